from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import pytest

from gnss_pw.errors import ModelUnavailable
from gnss_pw.models import ScoreOutput, StationMetadata, WeatherObservation
from gnss_pw.stations import StationCatalog

FIRST_OBS_EPOCH = 1700000000  # 2023-11-14T22:13:20Z


def rinex_body(values: list[str], with_first_obs: bool = True, with_terminator: bool = True) -> bytes:
    """Minimal observation text: header, terminator and padded data lines."""
    header = [
        "     2.11           OBSERVATION DATA    G (GPS)             RINEX VERSION / TYPE",
        "JPLM                                                        MARKER NAME",
    ]
    if with_first_obs:
        header.append(
            f"{2023:6d}{11:6d}{14:6d}{22:6d}{13:6d}{20.0:13.7f}     GPS         TIME OF FIRST OBS"
        )
    if with_terminator:
        header.append(" " * 60 + "END OF HEADER")
    data = [value.ljust(64) for value in values]
    return ("\n".join(header + data) + "\n").encode("ascii")


def lzw_literals(data: bytes) -> bytes:
    """Unix compress stream made only of 9-bit literal codes (inputs under ~250 bytes)."""
    out = bytearray(b"\x1f\x9d\x90")
    acc = 0
    nbits = 0
    for byte in data:
        acc |= byte << nbits
        nbits += 9
        while nbits >= 8:
            out.append(acc & 0xFF)
            acc >>= 8
            nbits -= 8
    if nbits:
        out.append(acc & 0xFF)
    return bytes(out)


class FixedScorer:
    def __init__(self, predicted_pw: float, uncertainty: float = 0.5) -> None:
        self.output = ScoreOutput(predicted_pw=predicted_pw, uncertainty=uncertainty)
        self.calls: list[dict[str, Any]] = []

    def score(self, features: Mapping[str, Any]) -> ScoreOutput:
        self.calls.append(dict(features))
        return self.output


class FailingScorer:
    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or ModelUnavailable("Predictor timed out after 10.0s")
        self.calls = 0

    def score(self, features: Mapping[str, Any]) -> ScoreOutput:
        self.calls += 1
        raise self.exc


def fixed_clock() -> datetime:
    return datetime(2024, 7, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def catalog() -> StationCatalog:
    return StationCatalog(
        [
            StationMetadata(station_id="JPLM", latitude=34.2048, longitude=-118.1732, elevation_m=424.0),
            StationMetadata(station_id="HRAO", latitude=-25.8901, longitude=27.6869, elevation_m=1414.2),
        ]
    )


@pytest.fixture
def weather_ok():
    def lookup(latitude: float, longitude: float, epoch_utc: int) -> WeatherObservation:
        return WeatherObservation(temperature_c=18.5, pressure_hpa=968.0, humidity_pct=42.0, source="stub")

    return lookup


@pytest.fixture
def weather_down():
    def lookup(latitude: float, longitude: float, epoch_utc: int) -> WeatherObservation:
        raise TimeoutError("weather service timed out")

    return lookup
