from __future__ import annotations

import json
import logging
from pathlib import Path

from gnss_pw.models import StationMetadata

logger = logging.getLogger(__name__)

# RINEX 2 short names and RINEX 3 long names both start with the 4-character marker.
MARKER_LENGTH = 4


class StationCatalog:
    """Read-only station metadata keyed by upper-case station id."""

    def __init__(self, stations: list[StationMetadata] | None = None) -> None:
        self._by_id = {station.station_id.upper(): station for station in stations or []}

    def __len__(self) -> int:
        return len(self._by_id)

    def __call__(self, station_id: str) -> StationMetadata | None:
        return self.lookup(station_id)

    @classmethod
    def from_json(cls, path: Path) -> "StationCatalog":
        if not path.exists():
            logger.warning(f"Station catalog not found at {path}; every station will be unknown")
            return cls()

        payload = json.loads(path.read_text(encoding="utf-8"))
        stations = []
        for entry in payload.get("stations", []):
            try:
                stations.append(
                    StationMetadata(
                        station_id=str(entry["station_id"]).upper(),
                        latitude=float(entry["latitude"]),
                        longitude=float(entry["longitude"]),
                        elevation_m=float(entry["elevation_m"]),
                        name=entry.get("name"),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping malformed station entry {entry!r}: {exc}")
        logger.info(f"Loaded {len(stations)} stations from {path}")
        return cls(stations)

    def lookup(self, station_id: str) -> StationMetadata | None:
        key = station_id.upper()
        station = self._by_id.get(key)
        if station is None and len(key) > MARKER_LENGTH:
            station = self._by_id.get(key[:MARKER_LENGTH])
        return station
