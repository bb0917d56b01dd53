"""Custom exception classes and handlers for the API."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str | None = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found")


class ValidationError(Exception):
    """Raised when request parameters are rejected."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DataSourceError(Exception):
    """Raised when an external data source fails or returns an unusable payload."""

    def __init__(self, source: str, message: str | None = None):
        self.source = source
        detail = f"Could not fetch data from {source}"
        if message:
            detail = f"{detail}: {message}"
        self.detail = detail
        super().__init__(detail)


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle NotFoundError exceptions."""
    return JSONResponse(status_code=404, content={"error": str(exc)})


async def validation_error_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """Handle ValidationError exceptions."""
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": exc.details},
    )


async def data_source_error_handler(
    request: Request, exc: DataSourceError
) -> JSONResponse:
    """Handle DataSourceError exceptions."""
    logger.warning("External data source failure: %s", exc.detail)
    return JSONResponse(
        status_code=503,
        content={"error": "External data source unavailable", "details": exc.detail},
    )


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle database and unexpected errors without leaking internals."""
    logger.error(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
