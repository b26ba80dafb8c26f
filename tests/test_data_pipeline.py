from __future__ import annotations

import csv
import gzip
from pathlib import Path

from conftest import FixedScorer, fixed_clock, rinex_body
from gnss_pw.data.contract import FEATURE_COLUMNS, PREDICTION_COLUMNS, REJECTED_COLUMNS
from gnss_pw.data.pipeline import list_observation_files, run_batch_pipeline
from gnss_pw.estimator import PwEstimator
from gnss_pw.service import PwService


def _read_rows(path: Path) -> list[dict[str, str]]:
    with path.open("r", newline="", encoding="utf-8") as fh:
        return list(csv.DictReader(fh))


def _input_dir(tmp_path: Path) -> Path:
    input_dir = tmp_path / "incoming"
    input_dir.mkdir()
    (input_dir / "JPLM3180.23o.gz").write_bytes(gzip.compress(rinex_body(["   12.50000000"])))
    (input_dir / "HRAO0010.24o").write_bytes(rinex_body(["   20.00000000", "   22.00000000"]))
    (input_dir / "ZZZZ0010.24o").write_bytes(rinex_body(["   20.00000000"]))
    (input_dir / "JPLM0020.24o").write_bytes(rinex_body(["garbage"]))
    (input_dir / ".DS_Store").write_bytes(b"\x00")
    return input_dir


def _service(catalog) -> PwService:
    estimator = PwEstimator(scorer=FixedScorer(predicted_pw=14.0), clock=fixed_clock)
    return PwService(estimator=estimator, station_lookup=catalog)


def test_run_batch_pipeline_writes_expected_files(tmp_path: Path, catalog) -> None:
    outputs = run_batch_pipeline(_input_dir(tmp_path), tmp_path / "data", _service(catalog), include_weather=False)

    assert outputs["features"].exists()
    assert outputs["predictions"].exists()
    assert outputs["rejected"].exists()
    assert outputs["features"].parent == tmp_path / "data" / "processed"


def test_batch_rows_and_schemas(tmp_path: Path, catalog) -> None:
    outputs = run_batch_pipeline(_input_dir(tmp_path), tmp_path / "data", _service(catalog), include_weather=False)

    feature_rows = _read_rows(outputs["features"])
    prediction_rows = _read_rows(outputs["predictions"])
    rejected_rows = _read_rows(outputs["rejected"])

    assert list(feature_rows[0].keys()) == FEATURE_COLUMNS
    assert list(prediction_rows[0].keys()) == PREDICTION_COLUMNS
    assert list(rejected_rows[0].keys()) == REJECTED_COLUMNS

    assert [row["source_file"] for row in feature_rows] == ["HRAO0010.24o", "JPLM3180.23o.gz"]
    assert {row["source_file"]: row["error"] for row in rejected_rows} == {
        "JPLM0020.24o": "ExtractionFailed",
        "ZZZZ0010.24o": "UnknownStation",
    }

    hrao = feature_rows[0]
    assert float(hrao["zwd_mm"]) == 21.0
    assert hrao["timestamp_iso"] == "2023-11-14T22:13:20Z"
    assert hrao["temperature_c"] == ""
    assert hrao["weather_degraded"] == "0"
    assert {row["method"] for row in prediction_rows} == {"model"}


def test_unknown_values_are_blank_not_zero(tmp_path: Path, catalog) -> None:
    outputs = run_batch_pipeline(_input_dir(tmp_path), tmp_path / "data", _service(catalog), include_weather=False)

    for row in _read_rows(outputs["features"]):
        assert row["pressure_hpa"] == ""
        assert row["humidity_pct"] == ""
        assert row["weather_source"] == ""


def test_hidden_files_are_not_listed(tmp_path: Path) -> None:
    input_dir = _input_dir(tmp_path)
    (input_dir / "nested").mkdir()

    names = [path.name for path in list_observation_files(input_dir)]

    assert names == ["HRAO0010.24o", "JPLM0020.24o", "JPLM3180.23o.gz", "ZZZZ0010.24o"]


def test_empty_directory_writes_header_only_files(tmp_path: Path, catalog) -> None:
    input_dir = tmp_path / "empty"
    input_dir.mkdir()

    outputs = run_batch_pipeline(input_dir, tmp_path / "data", _service(catalog))

    assert outputs["features"].read_text(encoding="utf-8").strip() == ",".join(FEATURE_COLUMNS)
    assert _read_rows(outputs["predictions"]) == []


def test_every_exported_column_is_described() -> None:
    from gnss_pw.data.contract import COLUMN_DESCRIPTIONS, MODEL_FEATURE_FIELDS

    for column in MODEL_FEATURE_FIELDS + FEATURE_COLUMNS + PREDICTION_COLUMNS + REJECTED_COLUMNS:
        assert column in COLUMN_DESCRIPTIONS
