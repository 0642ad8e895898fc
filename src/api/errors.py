"""
Mapping of service failures to HTTP responses.

Every failure body has the same shape: {"error": <kind>, "detail": <message>}.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import DBAPIError

from schemas.errors import ErrorResponse
from services.exceptions import ErrorKind, InternalError, ServiceError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(kind: ErrorKind, detail: str) -> JSONResponse:
    """JSON error body with the status code for `kind`."""
    return JSONResponse(
        status_code=STATUS_BY_KIND[kind],
        content=ErrorResponse(error=kind, detail=detail).model_dump(mode="json"),
    )


def _format_validation_errors(errors: list[dict]) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


async def service_error_handler(_request: Request, exc: ServiceError) -> JSONResponse:
    """Translate a typed service failure."""
    if exc.kind == ErrorKind.INTERNAL:
        logger.error("Internal service error: %s", exc.message)
    return error_response(exc.kind, exc.message)


async def request_validation_handler(
    _request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """Malformed request bodies and parameters are validation errors (400)."""
    return error_response(ErrorKind.VALIDATION, _format_validation_errors(exc.errors()))


async def pydantic_validation_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    """Schema validation raised inside a handler is a validation error too."""
    return error_response(ErrorKind.VALIDATION, _format_validation_errors(exc.errors()))


async def database_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """Store failures that escaped the services; details stay in the log."""
    logger.exception("Database error", exc_info=exc)
    return await service_error_handler(
        request, InternalError("The data store is unavailable; please retry"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install all handlers on `app`."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, pydantic_validation_handler)
    app.add_exception_handler(DBAPIError, database_error_handler)
