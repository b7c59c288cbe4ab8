"""
FastAPI application entry point.

Run with: uvicorn journal.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from journal.core.config import settings
from journal.core.logging import configure_logging, get_logger, bind_context, clear_context
from journal.persistence.cache import close_redis
from journal.persistence.database import init_database
from journal.api.routes import context, conversations, health
from journal.api.exception_handlers import setup_exception_handlers

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Reuses an incoming X-Request-ID header, or generates a UUID4
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        """Process request and add correlation ID."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


# =============================================================================
# Provider key check
# =============================================================================

# Mirrors GENERATION_DEFAULTS in journal/llm/client.py
GENERATION_DEFAULT_PROVIDER = "openai"

PROVIDER_KEYS = {
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "deepseek": ("deepseek_api_key", "DEEPSEEK_API_KEY"),
}


def validate_api_keys() -> list[str]:
    """
    Check that the generation provider and mem0 are configured.

    Missing keys are not fatal: replies fall back to templates and memory
    enrichment returns nothing. Each gap is logged as a warning.

    Returns:
        List of warning messages (empty if everything is configured)
    """
    warnings = []

    provider = settings.llm_generation_provider or GENERATION_DEFAULT_PROVIDER
    if provider not in PROVIDER_KEYS:
        warnings.append(
            f"Unknown LLM provider '{provider}'. "
            f"Supported providers: {', '.join(PROVIDER_KEYS)}"
        )
    else:
        attr_name, env_var = PROVIDER_KEYS[provider]
        if not getattr(settings, attr_name, None):
            warnings.append(
                f"{env_var} is not set; replies will use templates ({provider} provider)"
            )

    if not settings.mem0_api_key:
        warnings.append("MEM0_API_KEY is not set; memory enrichment is disabled")

    for message in warnings:
        log.warning("configuration_incomplete", message=message)

    if not warnings:
        log.info("api_keys_validated", generation=provider)

    return warnings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        database_path=str(settings.database_path),
    )

    validate_api_keys()

    await init_database()

    log.info("application_started")

    yield

    log.info("application_shutting_down")
    await close_redis()


# Create FastAPI application
app = FastAPI(
    title="Reflection Journal",
    description="Conversation state machine for voice and text journaling",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(conversations.router)
app.include_router(context.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": "Reflection Journal", "version": "0.1.0", "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "journal.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
