from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from gnss_pw.errors import UnknownStation
from gnss_pw.models import CalendarFields, FeatureRecord, StationMetadata, WeatherObservation
from gnss_pw.weather import climatology

logger = logging.getLogger(__name__)

StationLookup = Callable[[str], StationMetadata | None]
WeatherLookup = Callable[[float, float, int], WeatherObservation]


def to_iso(ts: datetime) -> str:
    return ts.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def calendar_fields(epoch_utc: int) -> CalendarFields:
    """Split an epoch into UTC calendar fields; never uses local time."""
    ts = datetime.fromtimestamp(epoch_utc, UTC)
    return CalendarFields(
        year=ts.year,
        month=ts.month,
        day=ts.day,
        hour=ts.hour,
        minute=ts.minute,
        second=ts.second,
        iso=to_iso(ts),
    )


def enrich(
    record: FeatureRecord,
    station_lookup: StationLookup,
    weather_lookup: WeatherLookup | None,
    include_weather: bool,
) -> FeatureRecord:
    """Attach station geometry and, optionally, weather covariates.

    Unknown stations fail the request. Weather failures degrade to
    climatology and mark the record ``weather_degraded``.
    """
    station = station_lookup(record.station_id)
    if station is None:
        raise UnknownStation(record.station_id)

    enriched = replace(
        record,
        latitude=station.latitude,
        longitude=station.longitude,
        elevation_m=station.elevation_m,
    )
    if not include_weather:
        return enriched

    try:
        if weather_lookup is None:
            raise RuntimeError("no weather lookup configured")
        weather = weather_lookup(station.latitude, station.longitude, record.epoch_utc)
        degraded = False
    except Exception as exc:
        logger.warning(
            f"Weather lookup failed for station={record.station_id} epoch={record.epoch_utc}: "
            f"{type(exc).__name__}: {exc}; using climatology"
        )
        weather = climatology(station.latitude, station.elevation_m, record.epoch_utc)
        degraded = True

    return replace(
        enriched,
        temperature_c=weather.temperature_c,
        pressure_hpa=weather.pressure_hpa,
        humidity_pct=weather.humidity_pct,
        weather_degraded=degraded,
        weather_source=weather.source,
    )
