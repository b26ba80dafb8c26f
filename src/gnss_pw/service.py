from __future__ import annotations

import logging
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from gnss_pw.analysis import ErrorAnalyzer
from gnss_pw.config import Settings
from gnss_pw.enrichment import StationLookup, WeatherLookup, enrich, to_iso
from gnss_pw.errors import InvalidUpload
from gnss_pw.estimator import PwEstimator
from gnss_pw.models import ErrorReport, FeatureRecord, ObservationEstimate, PredictionResult
from gnss_pw.rinex import extract_file
from gnss_pw.scoring import scorer_from_settings
from gnss_pw.stations import StationCatalog
from gnss_pw.weather import OpenMeteoWeather

logger = logging.getLogger(__name__)

# Compressed containers plus RINEX 2 (.23o / .23d) and RINEX 3 (.rnx / .crx) observation names.
_ACCEPTED_SUFFIXES = (".z", ".gz", ".rnx", ".crx")


def _is_accepted_filename(filename: str) -> bool:
    lowered = filename.lower()
    if lowered.endswith(_ACCEPTED_SUFFIXES):
        return True
    suffix = Path(lowered).suffix
    return len(suffix) == 4 and suffix[1:3].isdigit() and suffix[3] in {"o", "d"}


class PwService:
    """The three request paths, bound to explicitly constructed resources."""

    def __init__(
        self,
        estimator: PwEstimator,
        station_lookup: StationLookup,
        weather_lookup: WeatherLookup | None = None,
    ) -> None:
        self.estimator = estimator
        self.station_lookup = station_lookup
        self.weather_lookup = weather_lookup
        self.analyzer = ErrorAnalyzer(estimator)

    def close(self) -> None:
        """Release the weather client, if the lookup holds one."""
        close = getattr(self.weather_lookup, "close", None)
        if close is not None:
            close()

    def _now(self) -> datetime:
        return self.estimator.clock()

    def estimate_from_upload(
        self,
        stream: BinaryIO,
        filename: str | None,
        include_weather: bool = True,
        process_all_satellites: bool = False,
    ) -> ObservationEstimate:
        """Spool an upload into a request-scoped temp dir and estimate from it."""
        if not filename:
            raise InvalidUpload("No observation file provided")
        safe_name = Path(filename).name
        if not _is_accepted_filename(safe_name):
            raise InvalidUpload(f"Unsupported file type: {safe_name}")

        with tempfile.TemporaryDirectory(prefix="gnss_pw_") as tmp_dir:
            path = Path(tmp_dir) / safe_name
            with path.open("wb") as fh:
                shutil.copyfileobj(stream, fh)
            if path.stat().st_size == 0:
                raise InvalidUpload(f"Uploaded file {safe_name} is empty")
            return self._estimate_from_path(path, safe_name, include_weather, process_all_satellites)

    def estimate_from_observation(
        self,
        raw: bytes,
        filename: str,
        include_weather: bool = True,
        process_all_satellites: bool = False,
    ) -> ObservationEstimate:
        if not raw:
            raise InvalidUpload("Observation payload is empty")
        if not _is_accepted_filename(filename):
            raise InvalidUpload(f"Unsupported file type: {filename}")
        with tempfile.TemporaryDirectory(prefix="gnss_pw_") as tmp_dir:
            path = Path(tmp_dir) / Path(filename).name
            path.write_bytes(raw)
            return self._estimate_from_path(path, Path(filename).name, include_weather, process_all_satellites)

    def _estimate_from_path(
        self,
        path: Path,
        filename: str,
        include_weather: bool,
        process_all_satellites: bool,
    ) -> ObservationEstimate:
        notes: list[str] = []
        if process_all_satellites:
            # Reserved flag; samples are always pooled into one mean ZWD.
            notes.append("processAllSatellites is reserved; samples were pooled across satellites.")

        extraction = extract_file(path, filename, now=self._now)
        record = enrich(extraction.record, self.station_lookup, self.weather_lookup, include_weather)
        if record.weather_degraded:
            notes.append("Weather lookup failed; covariates are a climatological estimate.")
        if extraction.epoch_source != "header":
            notes.append("No TIME OF FIRST OBS header; epoch is the processing time.")

        prediction = self.estimator.predict(record)
        logger.info(
            f"Observation estimate for {filename}: station={record.station_id} "
            f"pw={prediction.predicted_pw_mm:.3f} method={prediction.method}"
        )
        return ObservationEstimate(
            extraction=extraction,
            record=record,
            prediction=prediction,
            processed_at=to_iso(self._now()),
            notes=notes,
        )

    def estimate_from_features(self, record: FeatureRecord) -> PredictionResult:
        return self.estimator.predict(record)

    def estimate_from_coordinates(self, latitude: float, longitude: float) -> PredictionResult:
        return self.estimator.interpolate(latitude, longitude)

    def analyze_error(self, latitude: float, longitude: float, estimated_pw_mm: float) -> ErrorReport:
        return self.analyzer.analyze(latitude, longitude, estimated_pw_mm)

    def processed_at(self) -> str:
        return to_iso(self._now())


def build_service(settings: Settings) -> PwService:
    """Wire catalog, weather client and scorer from settings."""
    catalog = StationCatalog.from_json(settings.station_catalog_path)
    weather = OpenMeteoWeather(
        timeout=settings.weather_timeout_s,
        forecast_url=settings.weather_forecast_url,
        archive_url=settings.weather_archive_url,
    )
    estimator = PwEstimator(scorer=scorer_from_settings(settings))
    return PwService(estimator=estimator, station_lookup=catalog, weather_lookup=weather)
