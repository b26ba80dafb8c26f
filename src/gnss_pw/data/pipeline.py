"""Batch-export feature and prediction datasets from a directory of observation files."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from gnss_pw.data.contract import FEATURE_COLUMNS, PREDICTION_COLUMNS, REJECTED_COLUMNS
from gnss_pw.enrichment import calendar_fields
from gnss_pw.errors import PwError
from gnss_pw.service import PwService

logger = logging.getLogger(__name__)


def _blank(value: object) -> object:
    # CSV has no null; unknown values become empty cells, never zero.
    return "" if value is None else value


def _write_csv(path: Path, rows: list[dict[str, object]], fieldnames: list[str]) -> None:
    # Open mode "w" overwrites previous outputs so each run is self-contained.
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)


def list_observation_files(input_dir: Path) -> list[Path]:
    """Regular, non-hidden files sorted by name for deterministic output."""
    return sorted(p for p in input_dir.iterdir() if p.is_file() and not p.name.startswith("."))


def run_batch_pipeline(
    input_dir: Path,
    base_dir: Path,
    service: PwService,
    include_weather: bool = True,
) -> dict[str, Path]:
    """Extract, enrich and score every file in ``input_dir``.

    Files rejected by any stage are listed in ``rejected.csv`` with the
    exception class and message; they never stop the batch.
    """
    processed_dir = base_dir / "processed"
    features_path = processed_dir / "features.csv"
    predictions_path = processed_dir / "predictions.csv"
    rejected_path = processed_dir / "rejected.csv"

    feature_rows: list[dict[str, object]] = []
    prediction_rows: list[dict[str, object]] = []
    rejected_rows: list[dict[str, object]] = []

    for path in list_observation_files(input_dir):
        try:
            with path.open("rb") as fh:
                estimate = service.estimate_from_upload(fh, path.name, include_weather=include_weather)
        except PwError as exc:
            logger.warning(f"Rejected {path.name}: {type(exc).__name__}: {exc}")
            rejected_rows.append({"source_file": path.name, "error": type(exc).__name__, "message": str(exc)})
            continue

        record = estimate.record
        timestamp_iso = calendar_fields(record.epoch_utc).iso
        feature_rows.append(
            {
                "source_file": path.name,
                "station_id": record.station_id,
                "latitude": _blank(record.latitude),
                "longitude": _blank(record.longitude),
                "elevation_m": _blank(record.elevation_m),
                "epoch_utc": record.epoch_utc,
                "timestamp_iso": timestamp_iso,
                "epoch_source": estimate.extraction.epoch_source,
                "zwd_mm": round(record.zwd_mm, 4),
                "total_observations": estimate.extraction.total_observations,
                "temperature_c": _blank(record.temperature_c),
                "pressure_hpa": _blank(record.pressure_hpa),
                "humidity_pct": _blank(record.humidity_pct),
                "weather_source": _blank(record.weather_source),
                "weather_degraded": 1 if record.weather_degraded else 0,
            }
        )
        prediction_rows.append(
            {
                "source_file": path.name,
                "station_id": record.station_id,
                "timestamp_iso": timestamp_iso,
                "predicted_pw_mm": round(estimate.prediction.predicted_pw_mm, 4),
                "uncertainty_mm": round(estimate.prediction.uncertainty_mm, 4),
                "method": estimate.prediction.method,
                "note": _blank(estimate.prediction.note),
            }
        )

    _write_csv(features_path, feature_rows, FEATURE_COLUMNS)
    _write_csv(predictions_path, prediction_rows, PREDICTION_COLUMNS)
    _write_csv(rejected_path, rejected_rows, REJECTED_COLUMNS)
    logger.info(
        f"Batch finished for {input_dir}: {len(feature_rows)} processed, {len(rejected_rows)} rejected"
    )
    return {
        "features": features_path,
        "predictions": predictions_path,
        "rejected": rejected_path,
    }
