"""FastAPI layer for the PW estimation service.

Install extras first:
    pip install -e '.[api]'

Run:
    uvicorn gnss_pw.api:app --port 3001
"""

from __future__ import annotations

import hmac
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from gnss_pw.config import Settings, load_settings, setup_logging
from gnss_pw.errors import (
    DegenerateReference,
    ExtractionFailure,
    InputValidationError,
    InterpolationUnavailable,
    PwError,
    UnknownStation,
)
from gnss_pw.enrichment import calendar_fields
from gnss_pw.models import (
    CoordinatesRequest,
    ErrorAnalysisRequest,
    ErrorReport,
    FeaturesRequest,
    ObservationEstimate,
    PredictionResult,
)
from gnss_pw.service import PwService, build_service

try:
    from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile
    from fastapi.responses import JSONResponse
except ModuleNotFoundError as exc:  # pragma: no cover
    raise SystemExit(
        "FastAPI not installed. Run: pip install -e '.[api]'"
    ) from exc


_STATUS_BY_ERROR: list[tuple[type[PwError], int, str]] = [
    (InputValidationError, 400, "input_validation"),
    (UnknownStation, 404, "unknown_station"),
    (ExtractionFailure, 422, "extraction_failure"),
    (DegenerateReference, 422, "degenerate_reference"),
    (InterpolationUnavailable, 503, "interpolation_unavailable"),
]


def prediction_payload(prediction: PredictionResult) -> dict[str, Any]:
    return {
        "predictedPwMm": round(prediction.predicted_pw_mm, 4),
        "uncertaintyMm": round(prediction.uncertainty_mm, 4),
        "method": prediction.method,
        "note": prediction.note,
    }


def extracted_payload(estimate: ObservationEstimate) -> dict[str, Any]:
    record = estimate.record
    cal = calendar_fields(record.epoch_utc)
    return {
        "stationId": record.station_id,
        "stationLatitude": record.latitude,
        "stationLongitude": record.longitude,
        "stationElevation": record.elevation_m,
        "timestamp": record.epoch_utc,
        "zwdObservation": round(record.zwd_mm, 4),
        "satelliteAzimuth": record.satellite_azimuth_deg,
        "satelliteElevation": record.satellite_elevation_deg,
        "totalObservations": estimate.extraction.total_observations,
        "satellites": list(estimate.extraction.satellites),
        "epochSource": estimate.extraction.epoch_source,
        "temperature": record.temperature_c,
        "pressure": record.pressure_hpa,
        "humidity": record.humidity_pct,
        "weatherSource": record.weather_source,
        "weatherDegraded": record.weather_degraded,
        "year": cal.year,
        "month": cal.month,
        "day": cal.day,
        "hour": cal.hour,
        "minute": cal.minute,
        "second": cal.second,
        "dateString": cal.iso,
    }


def error_report_payload(report: ErrorReport) -> dict[str, Any]:
    return {
        "estimatedPwMm": round(report.estimated_pw_mm, 4),
        "interpolatedPwMm": round(report.interpolated_pw_mm, 4),
        "absoluteErrorMm": round(report.absolute_error_mm, 4),
        "relativeErrorPct": round(report.relative_error_pct, 4),
        "interpretation": report.interpretation,
        "referenceMethod": report.reference_method,
    }


def create_app(service: PwService | None = None, settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # A caller-supplied service is owned by the caller and left open.
        owned = None
        if app.state.service is None:
            setup_logging(settings.log_dir)
            owned = app.state.service = build_service(settings)
        try:
            yield
        finally:
            if owned is not None:
                owned.close()
                app.state.service = None

    app = FastAPI(title="GNSS Precipitable Water Estimation", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service

    def get_service(request: Request) -> PwService:
        svc = request.app.state.service
        if svc is None:
            raise RuntimeError("PwService is not initialised; run the app under its lifespan")
        return svc

    def require_caller(authorization: str | None = Header(default=None)) -> str:
        expected = settings.api_token
        if expected is None:
            return "anonymous"
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), expected):
            raise HTTPException(status_code=401, detail="Missing or invalid bearer token")
        return "token"

    @app.exception_handler(PwError)
    def handle_pw_error(request: Request, exc: PwError) -> JSONResponse:
        for error_type, status_code, code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                return JSONResponse(
                    status_code=status_code,
                    content={"success": False, "error": code, "message": str(exc)},
                )
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "internal", "message": str(exc)},
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/pw/by/rinex")
    def estimate_from_rinex(
        rinex_file: UploadFile = File(..., alias="rinexFile"),
        include_meteo_data: bool = Form(True, alias="includeMeteoData"),
        process_all_satellites: bool = Form(False, alias="processAllSatellites"),
        caller: str = Depends(require_caller),
        svc: PwService = Depends(get_service),
    ) -> dict[str, Any]:
        estimate = svc.estimate_from_upload(
            rinex_file.file,
            rinex_file.filename,
            include_weather=include_meteo_data,
            process_all_satellites=process_all_satellites,
        )
        return {
            "success": True,
            "message": "Observation file processed",
            "extractedData": extracted_payload(estimate),
            "prediction": prediction_payload(estimate.prediction),
            "fileInfo": {
                "originalName": rinex_file.filename,
                "stationId": estimate.record.station_id,
                "processedAt": estimate.processed_at,
            },
            "notes": estimate.notes,
        }

    @app.post("/pw/by/features")
    def estimate_from_features(
        body: FeaturesRequest,
        caller: str = Depends(require_caller),
        svc: PwService = Depends(get_service),
    ) -> dict[str, Any]:
        record = body.to_record()
        prediction = svc.estimate_from_features(record)
        return {
            "success": True,
            "message": "Features scored",
            "prediction": prediction_payload(prediction),
            "calendar": {"dateString": calendar_fields(record.epoch_utc).iso},
            "processedAt": svc.processed_at(),
        }

    @app.post("/pw/by/interpolation")
    def estimate_from_coordinates(
        body: CoordinatesRequest,
        caller: str = Depends(require_caller),
        svc: PwService = Depends(get_service),
    ) -> dict[str, Any]:
        prediction = svc.estimate_from_coordinates(body.latitude, body.longitude)
        return {
            "success": True,
            "coordinates": {"latitude": body.latitude, "longitude": body.longitude},
            "prediction": prediction_payload(prediction),
            "processedAt": svc.processed_at(),
        }

    @app.post("/pw/by/error")
    def analyze_error(
        body: ErrorAnalysisRequest,
        caller: str = Depends(require_caller),
        svc: PwService = Depends(get_service),
    ) -> dict[str, Any]:
        report = svc.analyze_error(body.latitude, body.longitude, body.estimated_pw)
        return {"success": True, **error_report_payload(report)}

    return app


app = create_app()
