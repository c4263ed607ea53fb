"""Error handling middleware."""

import logging
from typing import Callable
from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from moodle_grader.core.exceptions import (
    ArchiveError, GraderError, RosterParseError, SessionNotFoundError
)


logger = logging.getLogger(__name__)

# Domain errors the client can act on, with their status and error type
_GRADER_ERRORS = (
    (RosterParseError, 400, "roster_parse_error"),
    (ArchiveError, 400, "archive_error"),
    (SessionNotFoundError, 404, "session_not_found"),
)


def error_body(code: int, message: str, error_type: str, **extra) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "type": error_type,
            **extra
        }
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, str(exc.detail), "http_error")
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation errors with detailed field information."""
    return JSONResponse(
        status_code=422,
        content=error_body(422, "Validation failed", "validation_error", details=jsonable_encoder(exc.errors()))
    )


async def grader_exception_handler(request: Request, exc: GraderError) -> JSONResponse:
    """
    Map domain errors to client errors.

    Anything not listed is a server error with a generic message.
    """
    for error_class, status_code, error_type in _GRADER_ERRORS:
        if isinstance(exc, error_class):
            logger.info("%s %s -> %s: %s", request.method, request.url.path, status_code, exc)
            return JSONResponse(status_code=status_code, content=error_body(status_code, str(exc), error_type))
    return await general_exception_handler(request, exc)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with safe error messages."""
    logger.error(
        "Unhandled exception on %s %s: %s: %s",
        request.method, request.url, type(exc).__name__, exc,
        exc_info=exc
    )

    # Return safe error message to client
    return JSONResponse(
        status_code=500,
        content=error_body(500, "Internal server error", "server_error")
    )


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log requests and responses."""
    logger.debug("%s %s", request.method, request.url)

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error("%s %s -> ERROR: %s: %s", request.method, request.url, type(e).__name__, e)
        raise

    logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


def setup_error_handling_middleware(app: FastAPI) -> None:
    """
    Set up error handling middleware for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(GraderError, grader_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.middleware("http")(logging_middleware)
