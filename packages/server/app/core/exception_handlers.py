"""Centralized exception handlers for the FastAPI app.

Register with register_exception_handlers(app). Maps the error taxonomy
and framework exceptions to JSON responses.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.core.exceptions import TeamTasksError

log = structlog.get_logger()


def _team_tasks_exception_handler(request: Request, exc: TeamTasksError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.failed", path=request.url.path, error=exc.error_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _field_name(loc: tuple) -> str:
    # Drop the "body"/"query"/"path" prefix FastAPI puts in front of the field.
    parts = [str(p) for p in loc[1:]] or [str(p) for p in loc]
    return ".".join(parts)


def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 with one message per invalid field."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        errors.setdefault(_field_name(tuple(err.get("loc", ()))), err.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": {"errors": errors},
        },
    )


def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "HTTP_ERROR", "message": exc.detail},
    )


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return 500; include detail only when debug is True."""
    log.exception("request.unhandled_exception", path=request.url.path)
    detail: Any = str(exc) if get_settings().debug else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": detail},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""
    app.add_exception_handler(TeamTasksError, _team_tasks_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)
