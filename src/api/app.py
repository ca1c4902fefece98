"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.dependencies import cleanup_dependencies, get_feed_service, get_status_monitor
from src.api.middleware.timeout import TimeoutMiddleware
from src.api.rate_limit import limiter
from src.api.routes import feed, health, services
from src.api.routes.health import VERSION
from src.config.settings import get_settings
from src.feed.config import FeedConfig
from src.feed.errors import (
    AllSourcesFailedError,
    MalformedCursorError,
    SourceUnavailableError,
    UnknownSourceError,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Feed API starting up")

    # Initialize tracing if enabled
    settings = get_settings()
    if settings.tracing_enabled:
        from src.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )

    await get_feed_service()
    monitor = await get_status_monitor()
    await monitor.start()

    yield

    logger.info("Feed API shutting down")
    await cleanup_dependencies()


def _error(status_code: int, detail: str, error_type: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "error_type": error_type, **extra},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Map engine errors to HTTP responses."""

    @app.exception_handler(MalformedCursorError)
    async def malformed_cursor_handler(request: Request, exc: MalformedCursorError):
        return _error(400, f"{exc}; restart from the first page", "malformed_cursor")

    @app.exception_handler(UnknownSourceError)
    async def unknown_source_handler(request: Request, exc: UnknownSourceError):
        return _error(404, str(exc), "unknown_source")

    @app.exception_handler(SourceUnavailableError)
    async def source_unavailable_handler(request: Request, exc: SourceUnavailableError):
        logger.warning("Source unavailable", source=exc.source, error=exc.message)
        return _error(502, str(exc), "source_unavailable", source=exc.source)

    @app.exception_handler(AllSourcesFailedError)
    async def all_sources_failed_handler(request: Request, exc: AllSourcesFailedError):
        response = _error(
            503,
            str(exc),
            "all_sources_failed",
            sources=[s.model_dump(mode="json", by_alias=True) for s in exc.statuses],
        )
        response.headers["Retry-After"] = str(FeedConfig().retry_after_seconds)
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return _error(500, "Internal server error", "internal")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "feed", "description": "Merged feed, source listings and comments"},
        {"name": "services", "description": "Upstream platform status"},
    ]

    app = FastAPI(
        title="Feed Mix API",
        description="""
Aggregated developer news feed.

## Sources

- **TabNews**: community posts ranked by tabcoins
- **Hacker News**: top stories ranked by score
- **Highlights**: curated summaries spliced into the mix feed

Pages are chained with the opaque `nextCursor` token.
        """,
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    # Add CORS middleware (origins from CORS_ORIGINS env var, comma-separated)
    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request timeout middleware (must be added before logging middleware
    # so timeout wraps the entire request lifecycle)
    if settings.request_timeout_seconds > 0:
        app.add_middleware(
            TimeoutMiddleware,
            timeout_seconds=settings.request_timeout_seconds,
        )

    # Request logging, correlation ID, and tracing middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        from src.observability.tracing import get_tracer, is_tracing_enabled

        # Correlation ID: use incoming header or generate a new one
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )

        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()

        try:
            if is_tracing_enabled():
                tracer = get_tracer("feed-mix.api")
                with tracer.start_as_current_span(
                    f"{request.method} {request.url.path}",
                    attributes={
                        "http.method": request.method,
                        "http.url": str(request.url),
                        "http.route": request.url.path,
                        "http.request_id": request_id,
                    },
                ) as span:
                    response = await call_next(request)
                    duration = time.perf_counter() - start_time
                    span.set_attribute("http.status_code", response.status_code)
            else:
                response = await call_next(request)
                duration = time.perf_counter() - start_time

            response.headers["X-Request-ID"] = request_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    # Rate limiting (enforced only when RATE_LIMIT_ENABLED=true)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_error_handlers(app)

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(feed.router, tags=["feed"])
    app.include_router(services.router, tags=["services"])

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Feed Mix API",
            "version": VERSION,
            "docs": "/docs",
        }

    return app
