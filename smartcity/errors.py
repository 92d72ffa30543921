"""
Error taxonomy and the exception handlers that render it.

Every failure leaves the API as ``{"error": <kind>, "detail": <message>}``
with a stable ``kind``, so clients can branch on it without parsing text.
"""

from typing import Any, Optional
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger("smartcity.errors")


class AppError(Exception):
    """Base class for all application errors."""

    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[Any] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class Unauthenticated(AppError):
    kind = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(AppError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient privileges"


class NotFound(AppError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(AppError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class InvalidRequest(AppError):
    kind = "invalid_request"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Internal(AppError):
    pass


def _render(exc: AppError) -> JSONResponse:
    content = {"error": exc.kind, "detail": exc.message}
    if exc.errors is not None:
        content["errors"] = exc.errors
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _render(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return _render(InvalidRequest("Invalid input data", errors=errors))


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.info("Integrity violation on %s %s: %s", request.method, request.url.path, exc.orig)
    return _render(Conflict("A record with the same unique value already exists"))


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database failure on %s %s", request.method, request.url.path)
    return _render(Internal())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)


__all__ = [
    "AppError",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "Conflict",
    "InvalidRequest",
    "Internal",
    "register_exception_handlers",
]
