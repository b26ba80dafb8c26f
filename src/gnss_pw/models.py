from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from gnss_pw.errors import InvalidFeatureRecord

UNKNOWN_STATION = "UNKNOWN"

METHOD_MODEL = "model"
METHOD_FALLBACK = "fallback"
METHOD_FALLBACK_INTERPOLATION = "fallback_interpolation"


def _check_range(name: str, value: float | None, lo: float, hi: float, hi_inclusive: bool = True) -> None:
    if value is None:
        return
    if not math.isfinite(value):
        raise InvalidFeatureRecord(f"{name} must be finite, got {value}")
    upper_ok = value <= hi if hi_inclusive else value < hi
    if value < lo or not upper_ok:
        bracket = "]" if hi_inclusive else ")"
        raise InvalidFeatureRecord(f"{name}={value} outside [{lo}, {hi}{bracket}")


@dataclass(frozen=True, slots=True)
class FeatureRecord:
    station_id: str
    epoch_utc: int
    zwd_mm: float
    latitude: float | None = None
    longitude: float | None = None
    elevation_m: float | None = None
    satellite_azimuth_deg: float | None = None
    satellite_elevation_deg: float | None = None
    temperature_c: float | None = None
    pressure_hpa: float | None = None
    humidity_pct: float | None = None
    weather_degraded: bool = False
    weather_source: str | None = None

    def __post_init__(self) -> None:
        try:
            datetime.fromtimestamp(self.epoch_utc, UTC)
        except (ValueError, OverflowError, OSError, TypeError) as exc:
            raise InvalidFeatureRecord(f"epoch_utc={self.epoch_utc} is not a representable UTC time") from exc
        _check_range("latitude", self.latitude, -90.0, 90.0)
        _check_range("longitude", self.longitude, -180.0, 180.0)
        _check_range("satellite_azimuth_deg", self.satellite_azimuth_deg, 0.0, 360.0, hi_inclusive=False)
        _check_range("satellite_elevation_deg", self.satellite_elevation_deg, 0.0, 90.0)
        _check_range("zwd_mm", self.zwd_mm, 0.0, math.inf)
        for name in ("elevation_m", "temperature_c", "pressure_hpa", "humidity_pct"):
            _check_range(name, getattr(self, name), -math.inf, math.inf)


@dataclass(frozen=True, slots=True)
class CalendarFields:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    iso: str


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    record: FeatureRecord
    total_observations: int
    satellites: tuple[str, ...] = ()
    epoch_source: str = "header"


@dataclass(frozen=True, slots=True)
class PredictionResult:
    predicted_pw_mm: float
    uncertainty_mm: float
    method: str
    note: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.method.startswith(METHOD_FALLBACK)


@dataclass(frozen=True, slots=True)
class ErrorReport:
    estimated_pw_mm: float
    interpolated_pw_mm: float
    absolute_error_mm: float
    relative_error_pct: float
    interpretation: str
    reference_method: str


@dataclass(frozen=True, slots=True)
class StationMetadata:
    station_id: str
    latitude: float
    longitude: float
    elevation_m: float
    name: str | None = None


@dataclass(frozen=True, slots=True)
class WeatherObservation:
    temperature_c: float
    pressure_hpa: float
    humidity_pct: float
    source: str


@dataclass(slots=True)
class ObservationEstimate:
    extraction: ExtractionResult
    record: FeatureRecord
    prediction: PredictionResult
    processed_at: str
    notes: list[str] = field(default_factory=list)


class ScoreOutput(BaseModel):
    """Response contract of the external PW predictor."""

    model_config = ConfigDict(allow_inf_nan=False)

    predicted_pw: float
    uncertainty: float = Field(..., ge=0)


class CoordinatesRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    latitude: float
    longitude: float


class ErrorAnalysisRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False, populate_by_name=True)

    latitude: float
    longitude: float
    estimated_pw: float = Field(..., alias="estimatedPw")


class FeaturesRequest(BaseModel):
    """Caller-supplied feature record for the all-features path."""

    model_config = ConfigDict(allow_inf_nan=False, populate_by_name=True)

    station_id: str = Field(UNKNOWN_STATION, alias="stationId")
    latitude: float = Field(..., alias="stationLatitude")
    longitude: float = Field(..., alias="stationLongitude")
    elevation_m: float | None = Field(None, alias="stationElevation")
    epoch_utc: int = Field(..., alias="timestamp")
    zwd_mm: float = Field(..., alias="zwdObservation")
    satellite_azimuth_deg: float | None = Field(None, alias="satelliteAzimuth")
    satellite_elevation_deg: float | None = Field(None, alias="satelliteElevation")
    temperature_c: float | None = Field(None, alias="temperature")
    pressure_hpa: float | None = Field(None, alias="pressure")
    humidity_pct: float | None = Field(None, alias="humidity")

    def to_record(self) -> FeatureRecord:
        return FeatureRecord(
            station_id=self.station_id or UNKNOWN_STATION,
            epoch_utc=self.epoch_utc,
            zwd_mm=self.zwd_mm,
            latitude=self.latitude,
            longitude=self.longitude,
            elevation_m=self.elevation_m,
            satellite_azimuth_deg=self.satellite_azimuth_deg,
            satellite_elevation_deg=self.satellite_elevation_deg,
            temperature_c=self.temperature_c,
            pressure_hpa=self.pressure_hpa,
            humidity_pct=self.humidity_pct,
            weather_source="caller" if self.temperature_c is not None else None,
        )
