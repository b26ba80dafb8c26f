from __future__ import annotations

import logging
import math

from gnss_pw.config import ERROR_BUCKETS
from gnss_pw.errors import DegenerateReference, InputValidationError, InterpolationUnavailable
from gnss_pw.estimator import PwEstimator
from gnss_pw.models import ErrorReport

logger = logging.getLogger(__name__)


def interpret_relative_error(relative_error_pct: float) -> str:
    if relative_error_pct < ERROR_BUCKETS.excellent_below_pct:
        return "excellent"
    if relative_error_pct < ERROR_BUCKETS.good_below_pct:
        return "good"
    if relative_error_pct < ERROR_BUCKETS.fair_below_pct:
        return "fair"
    return "poor"


class ErrorAnalyzer:
    """Compare a caller's PW estimate with the interpolated surface."""

    def __init__(self, estimator: PwEstimator) -> None:
        self.estimator = estimator

    def analyze(self, latitude: float, longitude: float, estimated_pw_mm: float) -> ErrorReport:
        if not math.isfinite(estimated_pw_mm):
            raise InputValidationError(f"Estimated PW must be finite, got {estimated_pw_mm}")

        try:
            reference = self.estimator.interpolate(latitude, longitude)
        except InputValidationError:
            raise
        except Exception as exc:
            raise InterpolationUnavailable(f"Interpolation failed: {type(exc).__name__}: {exc}") from exc

        interpolated = reference.predicted_pw_mm
        if interpolated == 0:
            raise DegenerateReference(
                f"Interpolated PW at ({latitude}, {longitude}) is 0; relative error is undefined"
            )

        absolute_error = abs(estimated_pw_mm - interpolated)
        relative_error_pct = absolute_error / abs(interpolated) * 100
        report = ErrorReport(
            estimated_pw_mm=estimated_pw_mm,
            interpolated_pw_mm=interpolated,
            absolute_error_mm=absolute_error,
            relative_error_pct=relative_error_pct,
            interpretation=interpret_relative_error(relative_error_pct),
            reference_method=reference.method,
        )
        logger.info(
            f"Error analysis at ({latitude}, {longitude}): estimated={estimated_pw_mm:.3f} "
            f"reference={interpolated:.3f} ({reference.method}) relative={relative_error_pct:.2f}%"
        )
        return report
