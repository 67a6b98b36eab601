"""Error taxonomy and the handlers that turn failures into API envelopes."""

import uuid
from typing import Any, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import DBAPIError, IntegrityError, StatementError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .log import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error: Any = None):
        super().__init__(message)
        self.message = message
        self.error = error if error is not None else message


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


def error_body(message: str, error: Any = None, **extra) -> dict:
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


def field_errors(errors: List[dict]) -> List[dict]:
    """Flatten pydantic error dicts into ``{path, message}`` pairs.

    The request location prefix (``body``, ``query``, ``path``) is dropped.
    """
    formatted = []
    for err in errors:
        loc = list(err.get("loc", ()))
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        formatted.append({"path": ".".join(str(part) for part in loc), "message": err.get("msg", "")})
    return formatted


def validation_error_from(exc: PydanticValidationError, message: str = "Validation error") -> ValidationError:
    return ValidationError(message, field_errors(exc.errors()))


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.error))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    in_query = bool(errors) and all((e.get("loc") or ("",))[0] == "query" for e in errors)
    message = "Validation error in query parameters" if in_query else "Validation error"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body(message, field_errors(errors)))


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_body("Duplicate entry", "A record with the same unique value already exists"),
    )


async def statement_error_handler(request: Request, exc: StatementError) -> JSONResponse:
    logger.warning("statement error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Invalid data format", str(exc.orig)),
    )


async def driver_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    # driver failures (lost connection, locked or missing database) surface as 500s
    return await unhandled_exception_handler(request, exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        body = error_body("Resource not found", f"Cannot {request.method} {request.url.path}")
    else:
        body = error_body(str(exc.detail), str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = str(uuid.uuid4())
    logger.exception("unhandled error %s on %s %s", error_id, request.method, request.url.path)
    if config.is_production():
        body = error_body("Internal server error")
    else:
        body = error_body("Internal server error", str(exc), errorId=error_id)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def install_error_handling(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    # IntegrityError < DBAPIError < StatementError; starlette picks the closest class in the MRO
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(DBAPIError, driver_error_handler)
    app.add_exception_handler(StatementError, statement_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
