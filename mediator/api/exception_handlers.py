"""
Global exception handlers for FastAPI.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from mediator.core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ConfigurationError,
    GenerationError,
    InvalidStatusTransitionError,
    InviteError,
    LLMRateLimitError,
    LLMTimeoutError,
    MediatorError,
    SafetyCheckUnavailableError,
    SessionNotActiveError,
    SessionNotFoundError,
    ValidationError,
)

log = structlog.get_logger(__name__)

# First match wins; InviteError precedes SessionNotActiveError so a join on an
# inactive session is reported as an invite failure.
STATUS_MAP = [
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AccessDeniedError, status.HTTP_403_FORBIDDEN),
    (InviteError, status.HTTP_400_BAD_REQUEST),
    (SessionNotActiveError, status.HTTP_409_CONFLICT),
    (InvalidStatusTransitionError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (LLMTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (LLMRateLimitError, status.HTTP_429_TOO_MANY_REQUESTS),
    (SafetyCheckUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (GenerationError, status.HTTP_502_BAD_GATEWAY),
]


def status_for(exc: MediatorError) -> int:
    for exc_type, code in STATUS_MAP:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def setup_exception_handlers(app: FastAPI):
    """Register custom exception handlers with the FastAPI application.

    Maps MediatorError subclasses to HTTP status codes, hides configuration
    details, and turns anything else into a generic 500.
    """

    @app.exception_handler(MediatorError)
    async def mediator_error_handler(
        request: Request,
        exc: MediatorError,
    ) -> JSONResponse:
        """Handle MediatorError exceptions with appropriate HTTP status codes."""
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        status_code = status_for(exc)

        if status_code >= 500:
            log_ctx.error("request_error", message=exc.message, status_code=status_code)
        else:
            log_ctx.warning("request_error", message=exc.message, status_code=status_code)

        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "type": type(exc).__name__,
                    "message": exc.message,
                }
            },
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request,
        exc: ConfigurationError,
    ) -> JSONResponse:
        """Handle configuration errors with HTTP 500 and a generic message."""
        log.error(
            "configuration_error",
            path=request.url.path,
            message=exc.message,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "ConfigurationError",
                    "message": "Server configuration error",
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle all unhandled exceptions with HTTP 500 status."""
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        log_ctx.error(
            "unhandled_exception",
            message=str(exc),
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "InternalServerError",
                    "message": "An unexpected error occurred",
                }
            },
        )
