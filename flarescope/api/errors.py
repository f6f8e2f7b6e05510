"""Exception handlers mapping the error taxonomy to HTTP responses.

Every error body has the shape ``{"error": str, "hint"?: str,
"success": false}``.  Query errors carry the engine's text unchanged.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from flarescope.errors import FlarescopeError

logger = logging.getLogger(__name__)


def error_payload(message: str, hint: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message, "success": False}
    if hint:
        body["hint"] = hint
    return body


def error_response(status_code: int, message: str, hint: str | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_payload(message, hint))


async def flarescope_error_handler(request: Request, exc: FlarescopeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return error_response(exc.status_code, exc.message, exc.hint)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    )
    return error_response(400, f"Invalid request: {details}" if details else "Invalid request")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: 500 with the exception text when debugging."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    settings = getattr(request.app.state, "settings", None)
    debug = bool(getattr(settings, "debug", False))
    return error_response(500, str(exc) if debug else "An unexpected error occurred.")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FlarescopeError, flarescope_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
