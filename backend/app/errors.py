"""Error taxonomy and the JSON error envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class PlacesApiError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal Server Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(PlacesApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"


class ConfigurationError(PlacesApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Server Configuration Error"


class ValidationError(PlacesApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Bad Request"


class NotFoundError(PlacesApiError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not Found"


class RateLimitError(PlacesApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "Too Many Requests"


class StoreError(PlacesApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal Server Error"


class ServiceUnavailable(PlacesApiError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "Service Unavailable"


class StartupError(RuntimeError):
    pass


def driver_message(exc: BaseException) -> str:
    """First line of the underlying driver error, without statement text or bound values."""
    if isinstance(exc, SQLAlchemyError):
        orig = getattr(exc, "orig", None)
        if orig is None:
            return exc.__class__.__name__
        # psycopg exposes the server's primary message separately.
        primary = getattr(getattr(orig, "diag", None), "message_primary", None)
        if primary:
            return primary
        exc = orig
    lines = str(exc).strip().splitlines()
    return lines[0] if lines else exc.__class__.__name__


def error_payload(error: str, message: str) -> dict[str, object]:
    return {"success": False, "error": error, "message": message}


def error_response(exc: PlacesApiError, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc.error, exc.message),
        headers=headers,
    )


async def _handle_places_error(request: Request, exc: PlacesApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(NotFoundError(f"Endpoint {request.method} {request.url.path} not found"))
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload("Method Not Allowed", f"Method {request.method} not allowed for {request.url.path}"),
            headers=getattr(exc, "headers", None),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload("Error", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    )
    return error_response(ValidationError(details or "Invalid request"))


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(PlacesApiError(driver_message(exc)))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PlacesApiError, _handle_places_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(Exception, _handle_unexpected)
