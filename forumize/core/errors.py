"""
Forumize error types.

Services raise these; `register_exception_handlers` maps them to
`{"error": message}` JSON bodies with the matching status code.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ForumizeError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ForumizeError):
    status_code = 400


class PermissionDeniedError(ForumizeError):
    status_code = 403


class NotFoundError(ForumizeError):
    status_code = 404


class ConflictError(ForumizeError):
    status_code = 409


class RateLimitedError(ForumizeError):
    status_code = 429


class ConfigurationError(ForumizeError):
    status_code = 500


class UpstreamServiceError(ForumizeError):
    status_code = 502


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ForumizeError)
    async def _forumize_error(request: Request, exc: ForumizeError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:])
        detail = first.get("msg", "Invalid request")
        message = f"{field}: {detail}" if field else detail
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
