"""
Error Handlers - global exception handlers rendering the error envelope.

HTTPException -> its status and detail
RequestValidationError -> 422 with field-level errors
IntegrityError -> 409 (duplicate key) or 400 (foreign key)
Exception (catch-all) -> 500, never leaks internal details
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.utils.responses import send_error

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error(f"{exc.detail}", extra={"path": request.url.path, "status_code": exc.status_code})
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        errors = None if isinstance(exc.detail, str) else exc.detail
        return send_error(message, exc.status_code, errors, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return send_error(
            "Validation failed",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            build_validation_errors(exc),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        code, message = classify_integrity_error(exc)
        logger.warning(
            f"Integrity error on {request.url.path}: {exc.orig}",
            extra={"path": request.url.path, "status_code": code},
        )
        return send_error(message, code)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
            extra={"path": request.url.path},
        )
        return send_error("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)


def build_validation_errors(exc: RequestValidationError) -> list:
    return [
        {
            "field": ".".join(str(loc) for loc in e["loc"] if loc != "body"),
            "message": e["msg"],
        }
        for e in exc.errors()
    ]


def classify_integrity_error(exc: Exception) -> tuple:
    """Map a database constraint violation to (status_code, message)."""
    text = str(exc).lower()
    if "duplicate key" in text or "unique" in text:
        return status.HTTP_409_CONFLICT, "Resource already exists"
    if "foreign key" in text:
        return status.HTTP_400_BAD_REQUEST, "Invalid reference data provided"
    return status.HTTP_400_BAD_REQUEST, "Request violates a data constraint"
