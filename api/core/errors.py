"""
Exception handlers that render every failure in the shared error envelope.
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import responses, settings

logger = logging.getLogger(__name__)


def _json(status_code: int, message: str, errors=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(responses.error(message, errors)),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    # Services may pass {"message": ..., "errors": ...} for structured details.
    if isinstance(detail, dict):
        message = str(detail.get("message") or "Request failed")
        errors = detail.get("errors")
    elif exc.status_code == status.HTTP_404_NOT_FOUND and detail == "Not Found":
        message = "Endpoint not found"
        errors = {"path": request.url.path}
    else:
        message = str(detail)
        errors = None
    return _json(exc.status_code, message, errors, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for item in exc.errors():
        loc = [str(part) for part in item.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "message": item.get("msg", "Invalid value")})
    return _json(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", errors)


async def unique_violation_handler(request: Request, exc: asyncpg.UniqueViolationError) -> JSONResponse:
    constraint = getattr(exc, "constraint_name", None)
    logger.info("unique_violation path=%s constraint=%s", request.url.path, constraint)
    return _json(status.HTTP_409_CONFLICT, "Duplicate field value", {"constraint": constraint})


async def foreign_key_violation_handler(
    request: Request, exc: asyncpg.ForeignKeyViolationError
) -> JSONResponse:
    constraint = getattr(exc, "constraint_name", None)
    return _json(status.HTTP_409_CONFLICT, "Referenced record is missing or still in use", {"constraint": constraint})


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("rate_limited path=%s limit=%s", request.url.path, exc.detail)
    return _json(status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests, please try again later.")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    errors = {"type": type(exc).__name__, "detail": str(exc)} if settings.is_development() else None
    return _json(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", errors)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(asyncpg.UniqueViolationError, unique_violation_handler)
    app.add_exception_handler(asyncpg.ForeignKeyViolationError, foreign_key_violation_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
