"""
Error taxonomy for AppForge.

Every domain error carries an HTTP status and a machine-readable code so the
API layer can render it without knowing where it came from.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppForgeError(Exception):
    """Base exception for AppForge."""

    def __init__(
        self,
        message: str,
        code: str = "appforge_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API response dict."""
        result = {"error": self.code, "detail": self.message}
        result.update(self.details)
        return result


class ValidationError(AppForgeError):
    """Raised for bad or missing input fields, before any state is touched."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            code="validation_error",
            status_code=400,
            details={"field": field} if field else None,
        )


class QuotaExceeded(AppForgeError):
    """Raised when a capped plan has used up its generations."""

    def __init__(self, plan: str, limit: int, used: int, in_flight: int = 0):
        super().__init__(
            message="Generation limit reached. Please upgrade your plan.",
            code="quota_exceeded",
            status_code=403,
            details={"plan": plan, "limit": limit, "used": used, "in_flight": in_flight, "remaining": 0},
        )


class GenerationUnavailable(AppForgeError):
    """
    Raised when a call to the model provider fails.

    Network errors, auth errors, rate limiting and malformed responses all end
    up here. ``client_error`` is True for 400/401/403 responses, which will
    not succeed on retry.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        upstream_status: Optional[int] = None,
        client_error: bool = False,
    ):
        super().__init__(
            message=message,
            code="generation_unavailable",
            status_code=502,
        )
        self.cause = cause
        self.upstream_status = upstream_status
        self.client_error = client_error
        if cause is not None:
            self.__cause__ = cause


class NotFound(AppForgeError):
    """Raised for unknown job or user ids."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            message=f"{resource} not found",
            code="not_found",
            status_code=404,
            details={"resource": resource.lower(), "id": str(resource_id)},
        )


class PackagingError(AppForgeError):
    """Raised when the download archive cannot be written."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message=message, code="packaging_error", status_code=500)
        if cause is not None:
            self.__cause__ = cause


class StaleRecord(AppForgeError):
    """Raised when a conditional update finds the record in another state."""

    def __init__(self, resource: str, resource_id: Any, expected: str, actual: str):
        super().__init__(
            message=f"{resource} is {actual}, expected {expected}",
            code="stale_record",
            status_code=409,
            details={"id": str(resource_id), "expected": expected, "actual": actual},
        )


async def appforge_error_handler(request: Request, exc: AppForgeError) -> JSONResponse:
    """Render domain errors as JSON."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain error handler on the app."""
    app.add_exception_handler(AppForgeError, appforge_error_handler)
