"""Schema contracts for scorer input, feature exports and prediction exports."""

from __future__ import annotations

# Input mapping handed to the scoring function. Unknown values are sent as null.
MODEL_FEATURE_FIELDS = [
    "query_mode",  # "observation" or "interpolation".
    "station_id",  # Station identifier, or UNKNOWN.
    "latitude",  # Latitude in decimal degrees.
    "longitude",  # Longitude in decimal degrees.
    "elevation_m",  # Station elevation in meters.
    "epoch_utc",  # Observation epoch, seconds since Unix epoch.
    "year",  # UTC calendar year.
    "month",  # UTC calendar month (1-12).
    "day",  # UTC day of month.
    "hour",  # UTC hour.
    "minute",  # UTC minute.
    "second",  # UTC second.
    "zwd_mm",  # Zenith wet delay in millimeters; null in interpolation mode.
    "satellite_azimuth_deg",  # Satellite azimuth in degrees.
    "satellite_elevation_deg",  # Satellite elevation in degrees.
    "temperature_c",  # Surface temperature in Celsius.
    "pressure_hpa",  # Surface pressure in hPa.
    "humidity_pct",  # Relative humidity in percent.
]

# Feature export schema written by the batch pipeline.
FEATURE_COLUMNS = [
    "source_file",  # Original observation file name.
    "station_id",
    "latitude",
    "longitude",
    "elevation_m",
    "epoch_utc",
    "timestamp_iso",  # Epoch in UTC ISO-8601 format.
    "epoch_source",  # header or processed_at.
    "zwd_mm",
    "total_observations",  # Number of ZWD samples averaged.
    "temperature_c",
    "pressure_hpa",
    "humidity_pct",
    "weather_source",  # open-meteo, climatology, caller or empty.
    "weather_degraded",  # 1 when climatology replaced a failed lookup.
]

# Prediction export schema written by the batch pipeline.
PREDICTION_COLUMNS = [
    "source_file",
    "station_id",
    "timestamp_iso",
    "predicted_pw_mm",
    "uncertainty_mm",
    "method",  # model, fallback or fallback_interpolation.
    "note",
]

REJECTED_COLUMNS = [
    "source_file",
    "error",  # Exception class name.
    "message",
]

# Human-readable schema dictionary for docs and UI tooltips.
COLUMN_DESCRIPTIONS = {
    "query_mode": "Scoring mode: observation (with ZWD) or interpolation (geometry and season only).",
    "source_file": "Name of the observation file the row was extracted from.",
    "station_id": "Station identifier derived from the file name, or UNKNOWN.",
    "latitude": "Station latitude in decimal degrees.",
    "longitude": "Station longitude in decimal degrees.",
    "elevation_m": "Station elevation in meters.",
    "epoch_utc": "Observation epoch in seconds since 1970-01-01T00:00:00Z.",
    "timestamp_iso": "Observation epoch in UTC ISO-8601 format.",
    "epoch_source": "Where the epoch came from: the header TIME OF FIRST OBS record or the processing time.",
    "year": "UTC calendar year of the epoch.",
    "month": "UTC calendar month of the epoch (1-12).",
    "day": "UTC day of month of the epoch.",
    "hour": "UTC hour of the epoch.",
    "minute": "UTC minute of the epoch.",
    "second": "UTC second of the epoch.",
    "zwd_mm": "Mean zenith wet delay in millimeters.",
    "total_observations": "Number of ZWD samples averaged into zwd_mm.",
    "satellite_azimuth_deg": "Satellite azimuth in degrees, when known.",
    "satellite_elevation_deg": "Satellite elevation in degrees, when known.",
    "temperature_c": "Surface air temperature in Celsius.",
    "pressure_hpa": "Surface pressure in hPa.",
    "humidity_pct": "Relative humidity in percent.",
    "weather_source": "Origin of the weather covariates.",
    "weather_degraded": "1 when the weather lookup failed and climatology was used.",
    "predicted_pw_mm": "Predicted precipitable water in millimeters.",
    "uncertainty_mm": "Uncertainty of the prediction in millimeters.",
    "method": "model when the scoring function answered, otherwise a fallback label.",
    "note": "Explanation of degraded-mode predictions.",
    "error": "Exception class that rejected the file.",
    "message": "Human-readable rejection reason.",
}
