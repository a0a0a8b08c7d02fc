"""Application error taxonomy and its HTTP translation.

Every error raised on purpose by a service or router derives from AppError.
The handlers registered in main.py turn them into `{"message": ..., **extra}`
JSON bodies, so no exception crosses the HTTP boundary unformatted.
"""
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from fluentdrama.core.logging import setup_logging

logger = setup_logging("errors")


class AppError(Exception):
    """Base class for errors with a client-facing message and status code."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        return {"message": self.message, **self.extra}


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ValidationFailedError(AppError):
    status_code = 400
    default_message = "Invalid request"


class InvalidTransitionError(AppError):
    """A scene operation was requested in a state that does not allow it."""

    status_code = 409
    default_message = "Operation not allowed in the current scene state"


class QuotaExceededError(AppError):
    """A metered operation was denied by the usage ledger."""

    status_code = 429
    default_message = "Usage limit reached. Please upgrade your subscription."

    def __init__(
        self,
        current: int,
        limit: int,
        message: Optional[str] = None,
        quota_type: Optional[str] = None,
    ) -> None:
        extra: dict[str, Any] = {"currentUsage": current, "limit": limit}
        if quota_type:
            extra["type"] = quota_type
        super().__init__(message, **extra)
        self.current = current
        self.limit = limit
        self.quota_type = quota_type


class UpstreamError(AppError):
    """The AI or payment provider failed; the raw error is kept for diagnostics."""

    status_code = 500
    default_message = "The upstream provider returned an error."

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None) -> None:
        super().__init__(message, **({"error": error} if error else {}))
        self.error = error


class ProviderNotConfiguredError(UpstreamError):
    """Raised by every provider call when its credentials are missing."""

    default_message = "The AI provider is not configured."


class ServiceUnavailableError(AppError):
    status_code = 503
    default_message = "Service not initialized."


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as its JSON body."""
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s",
            request.method,
            request.url.path,
            exc.message,
            extra={"status_code": exc.status_code, "error_type": type(exc).__name__},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: 500 with the raw error string."""
    logger.error(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"message": "An unexpected error occurred.", "error": str(exc)},
    )
