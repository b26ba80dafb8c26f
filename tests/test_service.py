from __future__ import annotations

import gzip
import io
import tempfile
from pathlib import Path

import pytest

from conftest import FailingScorer, FixedScorer, fixed_clock, rinex_body
from gnss_pw import rinex
from gnss_pw.errors import ExtractionFailed, InvalidUpload, UnknownStation
from gnss_pw.estimator import PwEstimator
from gnss_pw.service import PwService


@pytest.fixture
def scratch(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


def _service(catalog, weather, scorer=None) -> PwService:
    estimator = PwEstimator(scorer=scorer or FixedScorer(predicted_pw=17.25, uncertainty=0.9), clock=fixed_clock)
    return PwService(estimator=estimator, station_lookup=catalog, weather_lookup=weather)


def test_upload_is_extracted_enriched_and_scored(catalog, weather_ok, scratch: Path) -> None:
    upload = io.BytesIO(gzip.compress(rinex_body(["   12.50000000", "   13.50000000"])))
    estimate = _service(catalog, weather_ok).estimate_from_upload(upload, "JPLM3180.23o.gz")

    assert estimate.record.station_id == "JPLM3180"
    assert estimate.record.latitude == 34.2048
    assert estimate.record.zwd_mm == 13.0
    assert estimate.record.temperature_c == 18.5
    assert estimate.prediction.method == "model"
    assert estimate.prediction.predicted_pw_mm == 17.25
    assert estimate.processed_at == "2024-07-15T12:00:00Z"
    assert estimate.notes == []
    assert list(scratch.iterdir()) == []


def test_temp_dir_is_removed_when_extraction_fails(catalog, weather_ok, scratch: Path) -> None:
    upload = io.BytesIO(rinex_body(["short"]))
    with pytest.raises(ExtractionFailed):
        _service(catalog, weather_ok).estimate_from_upload(upload, "JPLM3180.23o")

    assert list(scratch.iterdir()) == []


def test_temp_dir_is_removed_for_unknown_station(catalog, weather_ok, scratch: Path) -> None:
    upload = io.BytesIO(rinex_body(["   12.50000000"]))
    with pytest.raises(UnknownStation) as excinfo:
        _service(catalog, weather_ok).estimate_from_upload(upload, "ZZZZ0010.23o")

    assert excinfo.value.station_id == "ZZZZ0010"
    assert list(scratch.iterdir()) == []


@pytest.mark.parametrize("filename", [None, "", "notes.txt", "JPLM3180.pdf", "archive.zip"])
def test_unsupported_uploads_are_rejected(catalog, weather_ok, filename) -> None:
    with pytest.raises(InvalidUpload):
        _service(catalog, weather_ok).estimate_from_upload(io.BytesIO(b"data"), filename)


def test_empty_upload_is_rejected(catalog, weather_ok, scratch: Path) -> None:
    with pytest.raises(InvalidUpload, match="empty"):
        _service(catalog, weather_ok).estimate_from_upload(io.BytesIO(b""), "JPLM3180.23o.Z")

    assert list(scratch.iterdir()) == []


def test_upload_path_components_are_dropped(catalog, weather_ok, scratch: Path) -> None:
    upload = io.BytesIO(rinex_body(["   12.50000000"]))
    estimate = _service(catalog, weather_ok).estimate_from_upload(upload, "../../etc/JPLM3180.23o")

    assert estimate.record.station_id == "JPLM3180"


def test_degraded_weather_and_missing_epoch_are_noted(catalog, weather_down, scratch: Path) -> None:
    raw = rinex_body(["   12.50000000"], with_first_obs=False)
    estimate = _service(catalog, weather_down, scorer=FailingScorer()).estimate_from_observation(
        raw, "HRAO0010.24o", process_all_satellites=True
    )

    assert estimate.record.weather_degraded
    assert estimate.extraction.epoch_source == "processed_at"
    assert estimate.record.epoch_utc == int(fixed_clock().timestamp())
    assert estimate.prediction.method == "fallback"
    assert len(estimate.notes) == 3
    assert any("reserved" in note for note in estimate.notes)


def test_weather_can_be_skipped(catalog, weather_ok) -> None:
    estimate = _service(catalog, weather_ok).estimate_from_observation(
        rinex_body(["   12.50000000"]), "JPLM3180.23o", include_weather=False
    )

    assert estimate.record.temperature_c is None
    assert estimate.record.weather_source is None


def test_coordinates_and_error_paths(catalog, weather_ok) -> None:
    service = _service(catalog, weather_ok, scorer=FixedScorer(predicted_pw=20.0))

    assert service.estimate_from_coordinates(34.05, -118.24).predicted_pw_mm == 20.0
    report = service.analyze_error(34.05, -118.24, 21.4)
    assert report.relative_error_pct == pytest.approx(7.0)
    assert report.interpretation == "fair"


def test_compact_rinex_upload_is_expanded(catalog, weather_ok, scratch: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rinex.hatanaka, "decompress", lambda content: rinex_body(["   12.50000000"]))
    compact = b"1.0                 COMPACT RINEX FORMAT                    CRINEX VERS   / TYPE\n"

    estimate = _service(catalog, weather_ok).estimate_from_upload(io.BytesIO(gzip.compress(compact)), "JPLM3180.23d.gz")

    assert estimate.record.zwd_mm == 12.5
    assert list(scratch.iterdir()) == []
