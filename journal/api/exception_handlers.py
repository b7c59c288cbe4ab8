"""
Global exception handlers for FastAPI.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from journal.core.exceptions import (
    CacheUnavailableError,
    ConfigurationError,
    ConversationStateNotFoundError,
    ImmutableFieldError,
    InvalidPhaseTransitionError,
    JournalSystemError,
    LLMAPIError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMTimeoutError,
    ValidationError,
)

log = structlog.get_logger(__name__)


def status_for(exc: JournalSystemError) -> int:
    """HTTP status code for an application error."""
    if isinstance(exc, ConversationStateNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (InvalidPhaseTransitionError, ImmutableFieldError)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, CacheUnavailableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, LLMTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(exc, LLMRateLimitError):
        return status.HTTP_429_TOO_MANY_REQUESTS
    if isinstance(exc, (LLMAPIError, LLMConnectionError)):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def setup_exception_handlers(app: FastAPI):
    """Register custom exception handlers with the FastAPI application.

    Sets up handlers for all JournalSystemError subclasses with appropriate
    HTTP status codes, plus handlers for cache outages, configuration errors
    and generic exceptions.
    """

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request,
        exc: ConfigurationError,
    ) -> JSONResponse:
        """Handle configuration errors with HTTP 500 status."""
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

    @app.exception_handler(JournalSystemError)
    async def journal_system_error_handler(
        request: Request,
        exc: JournalSystemError,
    ) -> JSONResponse:
        """Handle JournalSystemError exceptions with appropriate HTTP status codes.

        404 for missing state, 400 for validation, 409 for illegal state
        changes, 503/504/429 for unavailable collaborators.
        """
        status_code = status_for(exc)

        log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        ).warning(
            "request_error",
            message=exc.message,
            status_code=status_code,
        )

        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "type": type(exc).__name__,
                    "message": exc.message,
                }
            },
        )

    @app.exception_handler(CacheUnavailableError)
    async def cache_error_handler(
        request: Request,
        exc: CacheUnavailableError,
    ) -> JSONResponse:
        """Handle an unreachable conversation-state cache with HTTP 503."""
        log.error(
            "cache_unavailable",
            path=request.url.path,
            error=exc.message,
        )

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": {
                    "type": "CacheUnavailableError",
                    "message": "Conversation state cache is unavailable",
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle all unhandled exceptions with HTTP 500 status."""
        log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        ).error(
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
