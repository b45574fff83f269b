from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException

from app.core.config import settings

_LOG = logging.getLogger("app.errors")

INVALID_WHERE_FORMAT = "Invalid where format. Use where=column,value or where=with:relation,column,value"
INVALID_OR_WHERE_FORMAT = "Invalid orWhere format. Use orWhere=column,value or orWhere=with:relation,column,value"
DUPLICATE_ENTRY_MESSAGE = "Duplicate entry detected. Please ensure the value is unique."
PERMISSION_DENIED_MESSAGE = "You do not have the necessary permissions to access this resource."
PAGE_NOT_FOUND_MESSAGE = "The requested page could not be found."

# MySQL 1062, PostgreSQL 23505
_DUPLICATE_KEY_CODES = {"1062", "23505"}


class ApiError(Exception):
    status_code = 500
    public_message = "Internal Server Error. Please try again later."

    def __init__(self, message: str | None = None):
        self.message = message or self.public_message
        super().__init__(self.message)

    def response_message(self, debug: bool) -> str:
        return self.message


class MalformedFilterClause(ApiError):
    status_code = 400
    public_message = INVALID_WHERE_FORMAT


class InvalidFilterValue(ApiError):
    status_code = 400
    public_message = "Invalid filter value"


class ValidationFailure(ApiError):
    status_code = 422
    public_message = "The given data was invalid."


class DuplicateKeyViolation(ApiError):
    status_code = 400
    public_message = DUPLICATE_ENTRY_MESSAGE

    def response_message(self, debug: bool) -> str:
        return self.message if debug else self.public_message


class PermissionDenied(ApiError):
    status_code = 403
    public_message = PERMISSION_DENIED_MESSAGE


class EntityNotFound(ApiError):
    status_code = 404
    public_message = "The requested resource could not be found."

    def __init__(self, entity: str, ids: Any = None, message: str = "not found"):
        self.entity = entity
        self.ids = ids
        super().__init__(f"{entity} {message}")

    def response_message(self, debug: bool) -> str:
        if not debug:
            return self.public_message
        ident = self.ids if self.ids not in (None, "") else "Unknown"
        return f"{self.entity} with ID {ident} not found. Details: {self.message}"


def error_payload(message: str) -> dict[str, Any]:
    return {"success": False, "message": message}


def success_payload(message: str, data: Any = None) -> dict[str, Any]:
    return {"success": True, "message": message, "data": {} if data is None else data}


def is_duplicate_key_error(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    args = getattr(orig, "args", None) or ()
    if args and str(args[0]) in _DUPLICATE_KEY_CODES:
        return True
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode and str(pgcode) in _DUPLICATE_KEY_CODES:
        return True
    text = str(orig or exc)
    return "UNIQUE constraint failed" in text or "Duplicate entry" in text


def _first_validation_message(exc: RequestValidationError) -> str:
    for err in exc.errors():
        msg = str(err.get("msg") or "").strip()
        if not msg:
            continue
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        return f"{'.'.join(loc)}: {msg}" if loc else msg
    return ValidationFailure.public_message


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(error_payload(exc.response_message(settings.debug_mode)), status_code=exc.status_code)

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        if exc.status_code == 404 and not settings.debug_mode:
            detail = PAGE_NOT_FOUND_MESSAGE
        return JSONResponse(error_payload(detail), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(error_payload(_first_validation_message(exc)), status_code=422)

    @app.exception_handler(IntegrityError)
    async def _integrity_error_handler(request: Request, exc: IntegrityError):
        if is_duplicate_key_error(exc):
            return JSONResponse(error_payload(DUPLICATE_ENTRY_MESSAGE), status_code=400)
        _LOG.warning("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        message = str(exc.orig) if settings.debug_mode else "Database error. Please try again later."
        return JSONResponse(error_payload(message), status_code=500)

    @app.exception_handler(SQLAlchemyError)
    async def _database_error_handler(request: Request, exc: SQLAlchemyError):
        _LOG.error("database error on %s %s", request.method, request.url.path, exc_info=exc)
        message = str(exc) if settings.debug_mode else "Database error. Please try again later."
        return JSONResponse(error_payload(message), status_code=500)

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception):
        _LOG.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        message = str(exc) if settings.debug_mode else "Internal Server Error. Please try again later."
        return JSONResponse(error_payload(message), status_code=500)
