"""
Exceptions for precipitable-water estimation.
"""


class PwError(Exception):
    """Base exception for PW estimation errors."""

    pass


class InputValidationError(PwError):
    """Caller input rejected before any computation."""

    pass


class InvalidCoordinates(InputValidationError):
    """Latitude or longitude outside the valid range."""

    pass


class InvalidUpload(InputValidationError):
    """Missing, empty or wrongly typed observation upload."""

    pass


class InvalidFeatureRecord(InputValidationError):
    """Feature record fields outside their valid ranges."""

    pass


class ExtractionFailure(PwError):
    """Observation file could not be turned into a feature record."""

    pass


class UnsupportedFormat(ExtractionFailure):
    """File does not decompress or has no header terminator."""

    pass


class ExtractionFailed(ExtractionFailure):
    """No usable observations in the data section."""

    pass


class UnknownStation(PwError):
    """Station id has no metadata entry."""

    def __init__(self, station_id: str):
        super().__init__(f"Unknown station: {station_id}")
        self.station_id = station_id


class ModelUnavailable(PwError):
    """Scoring function could not be started, timed out or returned malformed output."""

    pass


class WeatherUnavailable(PwError):
    """Weather lookup failed or timed out."""

    pass


class InterpolationUnavailable(PwError):
    """Interpolated reference could not be produced."""

    pass


class DegenerateReference(PwError):
    """Interpolated reference is zero, so relative error is undefined."""

    pass
