"""Observation extractor for uploaded RINEX observation files.

The data-section rule here is a simplified placeholder: the leading
fixed-width field of every sufficiently long data line is read as a ZWD
sample in millimeters. It is not a RINEX observation decoder (no epoch
records, PRN lists or per-signal fields), and satellite geometry is left
unknown rather than invented.
"""

from __future__ import annotations

import gzip
import logging
import math
import re
import zlib
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import hatanaka
import unlzw3

from gnss_pw.config import RINEX_LAYOUT
from gnss_pw.errors import ExtractionFailed, UnsupportedFormat
from gnss_pw.models import UNKNOWN_STATION, ExtractionResult, FeatureRecord

logger = logging.getLogger(__name__)

_STATION_PATTERN = re.compile(rf"^[A-Z0-9]{{{RINEX_LAYOUT.min_station_id_length},}}")


def station_id_from_filename(filename: str) -> str:
    match = _STATION_PATTERN.match(Path(filename).name)
    return match.group(0) if match else UNKNOWN_STATION


_COMPACT_SUFFIX = re.compile(r"\.(crx|\d{2}d)$")

# First header line of every compact RINEX (Hatanaka) file.
_COMPACT_MARKER = b"CRINEX VERS"


def is_compact_name(filename: str) -> bool:
    """True for compact RINEX names (``.crx``, ``.YYd``), with or without an outer container."""
    lowered = filename.lower()
    for container in (".z", ".gz"):
        if lowered.endswith(container):
            lowered = lowered[: -len(container)]
            break
    return bool(_COMPACT_SUFFIX.search(lowered))


def _expand_compact(content: bytes, filename: str) -> bytes:
    if _COMPACT_MARKER not in content[:80]:
        raise UnsupportedFormat(f"{filename} has a compact RINEX name but no CRINEX header")
    try:
        return hatanaka.decompress(content)
    except Exception as exc:
        raise UnsupportedFormat(f"Could not expand compact RINEX {filename}: {type(exc).__name__}: {exc}") from exc


def decompress(raw: bytes, filename: str) -> bytes:
    """Undo the transport container implied by the file name, then compact RINEX if present."""
    lowered = filename.lower()
    content = raw
    try:
        if lowered.endswith(".z"):
            content = unlzw3.unlzw(raw)
        elif lowered.endswith(".gz"):
            content = gzip.decompress(raw)
    except (ValueError, OSError, EOFError, IndexError, zlib.error) as exc:
        raise UnsupportedFormat(f"Could not decompress {filename}: {type(exc).__name__}: {exc}") from exc
    if is_compact_name(filename):
        content = _expand_compact(content, filename)
    return content


def _parse_first_obs(line: str) -> int | None:
    # Header record: year, month, day, hour, minute as I6 and seconds as F13.7.
    parts = line[:43].split()
    if len(parts) < 6:
        return None
    try:
        year, month, day, hour, minute = (int(p) for p in parts[:5])
        seconds = float(parts[5])
        ts = datetime(year, month, day, hour, minute, int(seconds), tzinfo=UTC)
    except ValueError:
        return None
    return int(ts.timestamp())


def _split_header(lines: list[str]) -> tuple[list[str], list[str]]:
    for idx, line in enumerate(lines):
        if RINEX_LAYOUT.header_terminator in line:
            return lines[:idx], lines[idx + 1 :]
    raise UnsupportedFormat(f"No '{RINEX_LAYOUT.header_terminator}' marker found")


def _sample_zwd(data_lines: list[str]) -> tuple[list[float], list[str]]:
    samples: list[float] = []
    satellites: list[str] = []
    for line in data_lines:
        if len(line) <= RINEX_LAYOUT.min_line_length:
            continue
        try:
            value = float(line[: RINEX_LAYOUT.zwd_field_width])
        except ValueError:
            continue
        if not math.isfinite(value) or value <= 0:
            continue
        samples.append(value)
        token = line[: RINEX_LAYOUT.satellite_token_width].strip()
        if token and token not in satellites:
            satellites.append(token)
    return samples, satellites


def extract(
    raw: bytes,
    original_filename: str,
    now: Callable[[], datetime] | None = None,
) -> ExtractionResult:
    """Turn an observation file into a FeatureRecord without geometry or weather."""
    station_id = station_id_from_filename(original_filename)
    content = decompress(raw, original_filename)
    text = content.decode("ascii", errors="replace")
    header, data_lines = _split_header(text.splitlines())

    epoch_utc: int | None = None
    for line in header:
        if RINEX_LAYOUT.first_obs_label in line:
            epoch_utc = _parse_first_obs(line)
            break

    samples, satellites = _sample_zwd(data_lines)
    if not samples:
        raise ExtractionFailed(f"No ZWD observations found in {original_filename}")

    epoch_source = "header"
    if epoch_utc is None:
        clock = now or (lambda: datetime.now(UTC))
        epoch_utc = int(clock().timestamp())
        epoch_source = "processed_at"

    record = FeatureRecord(
        station_id=station_id,
        epoch_utc=epoch_utc,
        zwd_mm=sum(samples) / len(samples),
    )
    logger.info(
        f"Extracted {len(samples)} ZWD samples from {original_filename}: "
        f"station={station_id}, zwd_mm={record.zwd_mm:.3f}, epoch_source={epoch_source}"
    )
    return ExtractionResult(
        record=record,
        total_observations=len(samples),
        satellites=tuple(satellites),
        epoch_source=epoch_source,
    )


def extract_file(
    path: Path,
    original_filename: str | None = None,
    now: Callable[[], datetime] | None = None,
) -> ExtractionResult:
    return extract(path.read_bytes(), original_filename or path.name, now=now)
