"""
Meteorological covariates for feature records.
"""

from __future__ import annotations

import json
import math
import time
from datetime import UTC, datetime
from typing import Any

import httpx

from gnss_pw.config import DEFAULT_ARCHIVE_URL, DEFAULT_FORECAST_URL
from gnss_pw.errors import WeatherUnavailable
from gnss_pw.models import WeatherObservation

HOURLY_PARAMS = ["temperature_2m", "surface_pressure", "relative_humidity_2m"]

# The forecast endpoint only keeps a short window of past days.
ARCHIVE_AFTER_SECONDS = 5 * 24 * 3600

SEA_LEVEL_PRESSURE_HPA = 1013.25
PRESSURE_SCALE_HEIGHT_M = 8434.5
CLIMATOLOGY_HUMIDITY_PCT = 60.0


def climatology(latitude: float, elevation_m: float | None, epoch_utc: int) -> WeatherObservation:
    """Deterministic seasonal estimate used when the weather lookup fails."""
    month = datetime.fromtimestamp(epoch_utc, UTC).month
    abs_lat = abs(latitude)
    # Peaks in July north of the equator and in January south of it.
    hemisphere = 1.0 if latitude >= 0 else -1.0
    seasonal = hemisphere * 0.25 * abs_lat * math.cos(2 * math.pi * (month - 7) / 12)
    temperature_c = 27.0 - 0.4 * abs_lat + seasonal

    height = elevation_m or 0.0
    pressure_hpa = SEA_LEVEL_PRESSURE_HPA * math.exp(-height / PRESSURE_SCALE_HEIGHT_M)
    pressure_hpa = max(500.0, min(pressure_hpa, 1050.0))

    return WeatherObservation(
        temperature_c=round(temperature_c, 2),
        pressure_hpa=round(pressure_hpa, 2),
        humidity_pct=CLIMATOLOGY_HUMIDITY_PCT,
        source="climatology",
    )


class OpenMeteoWeather:
    """
    Hourly surface weather from the Open-Meteo forecast and archive APIs.

    Instances are callables matching the enricher's weather lookup signature
    ``(latitude, longitude, epoch_utc) -> WeatherObservation``.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        forecast_url: str = DEFAULT_FORECAST_URL,
        archive_url: str = DEFAULT_ARCHIVE_URL,
        client: httpx.Client | None = None,
    ):
        self.timeout = timeout
        self.forecast_url = forecast_url
        self.archive_url = archive_url
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={"User-Agent": "gnss-pw/0.1.0", "Accept": "application/json"},
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "OpenMeteoWeather":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __call__(self, latitude: float, longitude: float, epoch_utc: int) -> WeatherObservation:
        return self.fetch(latitude, longitude, epoch_utc)

    def _url_for(self, epoch_utc: int) -> str:
        if time.time() - epoch_utc > ARCHIVE_AFTER_SECONDS:
            return self.archive_url
        return self.forecast_url

    def _make_request(self, url: str, params: dict[str, str]) -> Any:
        try:
            response = self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise WeatherUnavailable(f"Request timeout after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise WeatherUnavailable(f"HTTP error {e.response.status_code}: {e}") from e
        except httpx.RequestError as e:
            raise WeatherUnavailable(f"Network error: {e}") from e
        except json.JSONDecodeError as e:
            raise WeatherUnavailable(f"Invalid JSON response: {e}") from e

    def fetch(self, latitude: float, longitude: float, epoch_utc: int) -> WeatherObservation:
        """
        Fetch the hourly observation covering ``epoch_utc``.

        Raises:
            WeatherUnavailable: on transport errors or when the hour is missing.
        """
        ts = datetime.fromtimestamp(epoch_utc, UTC)
        day = ts.strftime("%Y-%m-%d")
        params = {
            "latitude": f"{latitude:.4f}",
            "longitude": f"{longitude:.4f}",
            "hourly": ",".join(HOURLY_PARAMS),
            "start_date": day,
            "end_date": day,
            "timezone": "GMT",
        }
        data = self._make_request(self._url_for(epoch_utc), params)

        hourly = data.get("hourly") if isinstance(data, dict) else None
        if not hourly:
            raise WeatherUnavailable("Response has no hourly block")

        slot = ts.strftime("%Y-%m-%dT%H:00")
        try:
            idx = hourly["time"].index(slot)
            values = [hourly[name][idx] for name in HOURLY_PARAMS]
        except (KeyError, ValueError, IndexError, TypeError) as e:
            raise WeatherUnavailable(f"No hourly values for {slot}") from e
        if any(v is None for v in values):
            raise WeatherUnavailable(f"Incomplete hourly values for {slot}")

        temperature, pressure, humidity = (float(v) for v in values)
        return WeatherObservation(
            temperature_c=temperature,
            pressure_hpa=pressure,
            humidity_pct=humidity,
            source="open-meteo",
        )
