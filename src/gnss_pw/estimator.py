from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from gnss_pw.config import FALLBACK
from gnss_pw.data.contract import MODEL_FEATURE_FIELDS
from gnss_pw.enrichment import calendar_fields
from gnss_pw.errors import InvalidCoordinates, ModelUnavailable
from gnss_pw.models import (
    METHOD_FALLBACK,
    METHOD_FALLBACK_INTERPOLATION,
    METHOD_MODEL,
    UNKNOWN_STATION,
    FeatureRecord,
    PredictionResult,
    ScoreOutput,
)
from gnss_pw.scoring import Scorer

logger = logging.getLogger(__name__)


def validate_coordinates(latitude: float, longitude: float) -> None:
    if not (math.isfinite(latitude) and -90.0 <= latitude <= 90.0):
        raise InvalidCoordinates(f"Latitude must be within [-90, 90], got {latitude}")
    if not (math.isfinite(longitude) and -180.0 <= longitude <= 180.0):
        raise InvalidCoordinates(f"Longitude must be within [-180, 180], got {longitude}")


def model_features(record: FeatureRecord) -> dict[str, Any]:
    """Scorer input for an observation; unknown fields stay None."""
    cal = calendar_fields(record.epoch_utc)
    values = {
        "query_mode": "observation",
        "station_id": record.station_id,
        "latitude": record.latitude,
        "longitude": record.longitude,
        "elevation_m": record.elevation_m,
        "epoch_utc": record.epoch_utc,
        "year": cal.year,
        "month": cal.month,
        "day": cal.day,
        "hour": cal.hour,
        "minute": cal.minute,
        "second": cal.second,
        "zwd_mm": record.zwd_mm,
        "satellite_azimuth_deg": record.satellite_azimuth_deg,
        "satellite_elevation_deg": record.satellite_elevation_deg,
        "temperature_c": record.temperature_c,
        "pressure_hpa": record.pressure_hpa,
        "humidity_pct": record.humidity_pct,
    }
    return {name: values[name] for name in MODEL_FEATURE_FIELDS}


def interpolation_features(latitude: float, longitude: float, epoch_utc: int) -> dict[str, Any]:
    cal = calendar_fields(epoch_utc)
    values = dict.fromkeys(MODEL_FEATURE_FIELDS)
    values.update(
        {
            "query_mode": "interpolation",
            "station_id": UNKNOWN_STATION,
            "latitude": latitude,
            "longitude": longitude,
            "epoch_utc": epoch_utc,
            "year": cal.year,
            "month": cal.month,
            "day": cal.day,
            "hour": cal.hour,
            "minute": cal.minute,
            "second": cal.second,
        }
    )
    return values


def climatological_pw(latitude: float, month: int) -> float:
    """Seasonal PW guess bounded to a fixed physical range."""
    # Moist tropics, dry poles; the local summer adds up to 20 percent.
    base = FALLBACK.interpolation_max_pw_mm * math.cos(math.radians(latitude)) ** 2
    hemisphere = 1.0 if latitude >= 0 else -1.0
    seasonal = 1.0 + 0.2 * hemisphere * math.cos(2 * math.pi * (month - 7) / 12)
    value = base * seasonal * 0.8
    return max(FALLBACK.interpolation_min_pw_mm, min(value, FALLBACK.interpolation_max_pw_mm))


class PwEstimator:
    """Wraps the scoring function with the fallback rules for both query modes."""

    def __init__(
        self,
        scorer: Scorer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.scorer = scorer
        self.clock = clock or (lambda: datetime.now(UTC))

    def _score(self, features: dict[str, Any]) -> ScoreOutput:
        if self.scorer is None:
            raise ModelUnavailable("No scoring function configured")
        output = self.scorer.score(features)
        if not isinstance(output, ScoreOutput):
            raise ModelUnavailable(f"Scorer returned {type(output).__name__}, expected ScoreOutput")
        if not (math.isfinite(output.predicted_pw) and output.predicted_pw >= 0):
            raise ModelUnavailable(f"Scorer returned invalid PW: {output.predicted_pw}")
        if not (math.isfinite(output.uncertainty) and output.uncertainty >= 0):
            raise ModelUnavailable(f"Scorer returned invalid uncertainty: {output.uncertainty}")
        return output

    def _try_score(self, features: dict[str, Any]) -> tuple[ScoreOutput | None, str | None]:
        try:
            return self._score(features), None
        except ModelUnavailable as exc:
            reason = str(exc)
            logger.warning(f"Model unavailable ({features['query_mode']}): {reason}")
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"
            logger.error(f"Scorer failed ({features['query_mode']}): {reason}", exc_info=True)
        return None, reason

    def predict(self, record: FeatureRecord) -> PredictionResult:
        """Predict PW for an observation. Always returns a result."""
        try:
            features = model_features(record)
        except Exception as exc:
            logger.error(f"Could not build model features: {exc}", exc_info=True)
            output, reason = None, f"{type(exc).__name__}: {exc}"
        else:
            output, reason = self._try_score(features)

        if output is not None:
            return PredictionResult(
                predicted_pw_mm=output.predicted_pw,
                uncertainty_mm=output.uncertainty,
                method=METHOD_MODEL,
            )

        return PredictionResult(
            predicted_pw_mm=record.zwd_mm * FALLBACK.zwd_to_pw_ratio,
            uncertainty_mm=FALLBACK.observation_uncertainty_mm,
            method=METHOD_FALLBACK,
            note=(
                f"Model unavailable ({reason}). PW approximated as ZWD x {FALLBACK.zwd_to_pw_ratio}, "
                "a first-order empirical ratio."
            ),
        )

    def interpolate(self, latitude: float, longitude: float) -> PredictionResult:
        """Predict PW at a coordinate for the current UTC season, without ZWD."""
        validate_coordinates(latitude, longitude)
        now = self.clock()
        epoch_utc = int(now.timestamp())
        output, reason = self._try_score(interpolation_features(latitude, longitude, epoch_utc))

        if output is not None:
            return PredictionResult(
                predicted_pw_mm=output.predicted_pw,
                uncertainty_mm=output.uncertainty,
                method=METHOD_MODEL,
            )

        month = calendar_fields(epoch_utc).month
        return PredictionResult(
            predicted_pw_mm=round(climatological_pw(latitude, month), 3),
            uncertainty_mm=FALLBACK.interpolation_uncertainty_mm,
            method=METHOD_FALLBACK_INTERPOLATION,
            note=f"Model unavailable ({reason}). Climatological estimate for latitude and month.",
        )
