from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True, slots=True)
class FallbackConstants:
    # First-order empirical ZWD-to-PW ratio, not a physical constant.
    zwd_to_pw_ratio: float = 0.16
    observation_uncertainty_mm: float = 0.1
    interpolation_min_pw_mm: float = 5.0
    interpolation_max_pw_mm: float = 60.0
    interpolation_uncertainty_mm: float = 5.0


@dataclass(frozen=True, slots=True)
class ErrorBuckets:
    excellent_below_pct: float = 2.0
    good_below_pct: float = 5.0
    fair_below_pct: float = 10.0


@dataclass(frozen=True, slots=True)
class RinexLayout:
    header_terminator: str = "END OF HEADER"
    first_obs_label: str = "TIME OF FIRST OBS"
    min_line_length: int = 60
    zwd_field_width: int = 14
    satellite_token_width: int = 3
    min_station_id_length: int = 4


FALLBACK = FallbackConstants()
ERROR_BUCKETS = ErrorBuckets()
RINEX_LAYOUT = RinexLayout()

DEFAULT_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
DEFAULT_ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"


def default_station_catalog_path() -> Path:
    return Path(__file__).resolve().parents[2] / "data" / "stations" / "stations.json"


@dataclass(frozen=True, slots=True)
class Settings:
    model_command: str | None = None
    model_timeout_s: float = 10.0
    station_catalog_path: Path = default_station_catalog_path()
    weather_timeout_s: float = 10.0
    weather_forecast_url: str = DEFAULT_FORECAST_URL
    weather_archive_url: str = DEFAULT_ARCHIVE_URL
    api_token: str | None = None
    log_dir: Path = Path("logs")


def load_settings() -> Settings:
    """Read settings from the environment, after loading a local .env if present."""
    load_dotenv()
    catalog = os.getenv("PW_STATION_CATALOG")
    return Settings(
        model_command=os.getenv("PW_MODEL_COMMAND") or None,
        model_timeout_s=float(os.getenv("PW_MODEL_TIMEOUT_S", "10")),
        station_catalog_path=Path(catalog) if catalog else default_station_catalog_path(),
        weather_timeout_s=float(os.getenv("PW_WEATHER_TIMEOUT_S", "10")),
        weather_forecast_url=os.getenv("PW_WEATHER_FORECAST_URL", DEFAULT_FORECAST_URL),
        weather_archive_url=os.getenv("PW_WEATHER_ARCHIVE_URL", DEFAULT_ARCHIVE_URL),
        api_token=os.getenv("PW_API_TOKEN") or None,
        log_dir=Path(os.getenv("PW_LOG_DIR", "logs")),
    )


def setup_logging(log_dir: Path) -> logging.Logger:
    """Attach a dated file handler to the package logger once."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"gnss_pw_{datetime.now().strftime('%Y%m%d')}.log"

    logger = logging.getLogger("gnss_pw")
    logger.setLevel(logging.INFO)

    if not logger.handlers:
        handler = logging.FileHandler(log_file)
        handler.setLevel(logging.INFO)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
