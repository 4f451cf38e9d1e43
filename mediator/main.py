"""
FastAPI application entry point.

Run with: uvicorn mediator.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from mediator.core.config import settings
from mediator.core.logging import configure_logging, get_logger, bind_context, clear_context
from mediator.llm.client import resolve_provider
from mediator.persistence.database import init_database
from mediator.api.routes import health, invites, participants, realtime, sessions
from mediator.api.routes import settings as settings_routes
from mediator.api.exception_handlers import setup_exception_handlers

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Reuses an inbound X-Request-ID or generates a UUID4
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        # Reuse the caller's request ID or generate one
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        # Bind to structlog context for all logs in this request
        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            # Echo the request ID to the caller
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            # Clear context after request completes
            clear_context()


# =============================================================================
# API key validation
# =============================================================================

PROVIDER_KEYS = {
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
    "deepseek": ("deepseek_api_key", "DEEPSEEK_API_KEY"),
}


def validate_api_keys() -> None:
    """
    Validate that every configured LLM provider has an API key.

    Raises:
        RuntimeError: If a provider is unknown or its key is missing
    """
    errors = []
    resolved = {}

    # Check each client type against its resolved provider

    for client_type in ("safety", "generation"):
        provider = resolve_provider(client_type)
        resolved[client_type] = provider
        if provider not in PROVIDER_KEYS:
            errors.append(
                f"Unknown LLM provider '{provider}' for {client_type}. "
                f"Supported providers: {', '.join(PROVIDER_KEYS)}"
            )
            continue

        attr_name, env_var = PROVIDER_KEYS[provider]
        if not getattr(settings, attr_name, None):
            errors.append(
                f"LLM API key missing: {env_var} is required for {provider} "
                f"(used by {client_type} client). Set it in .env file."
            )

    if errors:
        error_msg = "API Key Validation Failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise RuntimeError(error_msg)

    log.info("api_keys_validated", **resolved)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    log.info(
        "application_starting",
        debug=settings.debug,
        database_path=str(settings.database_path),
    )

    # Fail fast if LLM providers are misconfigured
    if settings.validate_api_keys_on_startup:
        validate_api_keys()

    # Initialize database
    await init_database()

    log.info("application_started")

    yield

    # Shutdown
    log.info("application_shutting_down")


# Create FastAPI application
app = FastAPI(
    title="Guided Conversation Mediator",
    description="NVC-guided conflict mediation with safety interception and live collaboration",
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

# Correlation ID middleware (added after CORS, before exception handlers)
app.add_middleware(CorrelationIDMiddleware)

# Setup exception handlers
setup_exception_handlers(app)

# Include routers
app.include_router(health.router, tags=["system"])
# /sessions/join must be matched before /sessions/{session_id}
app.include_router(invites.router)
app.include_router(sessions.router)
app.include_router(participants.router)
app.include_router(realtime.router)
app.include_router(settings_routes.router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": "Guided Conversation Mediator", "version": "0.1.0", "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mediator.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
