"""
Custom exception classes and error handling.

Two families live here:
- APIException and subclasses: HTTP-facing errors with consistent responses.
- AnalyticsError and subclasses: raised by the analytics services, never
  tied to HTTP. Routers translate them.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


# ---------------------------------------------------------------------------
# Analytics engine errors
# ---------------------------------------------------------------------------

class AnalyticsError(Exception):
    """Base class for the designed-for analytics failure modes."""


class DataUnavailableError(AnalyticsError):
    """One log kind could not be read for a user/date range."""

    def __init__(self, kind: str, reason: str = ""):
        self.kind = kind
        self.reason = reason
        message = f"{kind} logs unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InsufficientDataError(AnalyticsError):
    """Too few paired observations for a meaningful correlation."""

    def __init__(self, metric_a: str, metric_b: str, sample_size: int, min_sample_size: int):
        self.metric_a = metric_a
        self.metric_b = metric_b
        self.sample_size = sample_size
        self.min_sample_size = min_sample_size
        super().__init__(
            f"Not enough paired days for {metric_a} vs {metric_b}: "
            f"{sample_size} < {min_sample_size}"
        )


class InvalidMetricError(AnalyticsError):
    """Metric name is not one of the known per-day metrics."""

    def __init__(self, metric: str):
        self.metric = metric
        super().__init__(f"Unknown metric: {metric}")
