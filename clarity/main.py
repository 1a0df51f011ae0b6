"""
FastAPI application entry point.

Run with: uvicorn clarity.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from clarity import __version__
from clarity.api.dependencies import get_classifier_adapter, get_content_repository
from clarity.api.exception_handlers import setup_exception_handlers
from clarity.api.routes import content, health, sessions
from clarity.core.config import routing_config, settings
from clarity.core.logging import bind_context, clear_context, configure_logging, get_logger

# Configure logging before anything else
configure_logging(debug=settings.debug, logs_dir=settings.logs_dir)
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Binds a per-request UUID to the structlog context and echoes it in the
    X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Loads the content index once at startup. A failed load is not fatal:
    the repository switches to built-in fallback content.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        content_source=str(settings.content_index_url or settings.content_index_path),
        classifier_provider=settings.classifier_provider,
        confidence_threshold=routing_config.confidence_threshold,
    )

    repository = get_content_repository()
    await repository.load_index()
    get_classifier_adapter()

    log.info("application_started", fallback_mode=repository.fallback_mode)

    yield

    log.info("application_shutting_down")


app = FastAPI(
    title="Clarity Engine",
    description="Routing and content selection for guided reflection journeys",
    version=__version__,
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
app.include_router(sessions.router)
app.include_router(content.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": "Clarity Engine", "version": __version__, "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "clarity.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
