"""Error taxonomy shared by services and routes.

Services raise these; ``register_exception_handlers`` turns them into the
``{"status": "error", "message": ...}`` bodies the clients expect.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tourism.core.config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str, errors: list[dict] | None = None, field: str | None = None):
        super().__init__(message)
        if errors is None and field:
            errors = [{"field": field, "message": message}]
        self.errors = errors or []


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class ProviderError(AppError):
    """Payment provider (or other upstream) failed; never retried."""
    status_code = 502


def _error_body(message: str, errors: list[dict] | None = None) -> dict:
    body = {"status": "error", "message": message}
    if errors:
        body["errors"] = errors
    return body


async def _app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, getattr(exc, "errors", None)))


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for e in exc.errors():
        loc = [str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "message": e.get("msg", "invalid")})
    return JSONResponse(status_code=400, content=_error_body("Validation failed", errors))


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)), headers=getattr(exc, "headers", None))


async def _unhandled_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = "Something went wrong!" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content=_error_body(message))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
