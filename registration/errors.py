"""Error taxonomy and the single JSON formatter every failure goes through."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)

DATABASE_ERROR_MESSAGE = "Database error. Please try again later."


class AppError(Exception):
    """A failure with a client-safe message and an HTTP status code."""

    def __init__(self, message: str, status_code: int = 500, errors: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors or {}


class NotFoundError(AppError):
    def __init__(self, message: str = "Resource not found.") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class DataValidationError(AppError):
    """Wraps pydantic errors as ``{field: message}``.

    A missing required field yields 400; any other problem yields 422.
    """

    def __init__(self, exc: ValidationError, message: str = "Validation failed.") -> None:
        details = exc.errors()
        missing = any(error["type"] == "missing" for error in details)
        super().__init__(
            message,
            status.HTTP_400_BAD_REQUEST if missing else status.HTTP_422_UNPROCESSABLE_ENTITY,
            _field_messages(details),
        )


def _field_messages(details) -> Dict[str, str]:
    messages: Dict[str, str] = {}
    for error in details:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        messages[".".join(loc) or "__root__"] = error.get("msg", "Invalid value")
    return messages


def database_error(exc: SQLAlchemyError) -> AppError:
    logger.error("Database operation failed: %s", exc)
    return AppError(DATABASE_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)


def database_failure(db: Session, exc: SQLAlchemyError) -> AppError:
    """Roll back the failed unit of work, then report it like ``database_error``."""
    db.rollback()
    return database_error(exc)


def error_body(message: str, errors: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"message": message, "errors": jsonable_encoder(errors or {})}


def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("Request failed with %s: %s", exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))


def http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = exc.errors()
    bad_request = any(error["type"] == "missing" or tuple(error.get("loc", ()))[:1] == ("path",) for error in details)
    status_code = status.HTTP_400_BAD_REQUEST if bad_request else status.HTTP_422_UNPROCESSABLE_ENTITY
    return JSONResponse(status_code=status_code, content=error_body("Validation failed.", _field_messages(details)))


def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(DATABASE_ERROR_MESSAGE),
    )


def add_error_handlers(app: FastAPI) -> None:
    """Route every failure through the same ``{message, errors}`` body."""

    app.add_exception_handler(Exception, unexpected_error_handler)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
