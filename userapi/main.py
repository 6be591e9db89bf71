"""
User API — FastAPI Application Factory
=======================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting and lifecycle
       management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn (uvicorn userapi.main:app) and by tests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Global stages (outermost first):                        │
    │  Security Headers → CORS → Error Boundary → Request ID   │
    │                   → Logging → Rate Limit                 │
    │                                                          │
    │  Routes (each runs Validation → Auth → handler):         │
    │  /api/v1/users[/{id}]   /api/v1/auth/*   /health         │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (fatal in production)
    3. Start the rate-limit sweeper task
    Shutdown:
    1. Cancel the sweeper
    2. Dispose database engine (close all connections)
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from userapi import __version__
from userapi.config import settings
from userapi.database import dispose_engine
from userapi.middleware import build_middleware
from userapi.middleware.error_boundary import register_exception_handlers
from userapi.middleware.rate_limit import RateLimitStore, sweep_periodically
from userapi.middleware.request_id import RequestIdLogFilter
from userapi.routes import auth, health, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s

    request_id comes from RequestIdLogFilter, which reads the ContextVar set
    by the request ID stage ("-" outside a request).
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,  # Override any existing logging config
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("User API %s starting up (%s)", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        if settings.is_production:
            logger.critical("Configuration error: %s", str(e))
            raise
        logger.warning("Configuration warning: %s", str(e))

    sweeper = asyncio.create_task(
        sweep_periodically(app.state.rate_limit_store, settings.rate_limit_sweep_interval)
    )

    logger.info("Server ready at http://%s:%d", settings.host, settings.port)
    logger.info("API docs: http://%s:%d/docs", settings.host, settings.port)

    yield  # Application runs here

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("User API shutting down...")
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    rate_limit_store: Optional[RateLimitStore] = None,
    rate_limit_max: Optional[int] = None,
    rate_limit_window_ms: Optional[int] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        rate_limit_store:     Store shared by the rate limiter and the sweeper;
                              a fresh one when omitted
        rate_limit_max:       Overrides RATE_LIMIT_MAX (0 disables limiting)
        rate_limit_window_ms: Overrides RATE_LIMIT_WINDOW_MS
    """
    store = rate_limit_store if rate_limit_store is not None else RateLimitStore()

    app = FastAPI(
        title="User API",
        description="User management REST API with request tracing and rate limiting.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        # SecurityHeaders → CORS → ErrorBoundary → RequestID → Logging → RateLimit
        middleware=build_middleware(store, rate_limit_max, rate_limit_window_ms),
    )
    app.state.rate_limit_store = store

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `userapi.main:app` to be importable
app = create_app()
