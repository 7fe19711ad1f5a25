"""
UserMgmt Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes logging setup, app-level middleware, the service registry
       and route mounting in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn usermgmt.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                        FastAPI App                           │
    │                                                              │
    │  App-level middleware (observes every request):              │
    │  ┌──────────┐ ┌──────────┐ ┌───────────────────────────┐    │
    │  │   CORS   │→│   GZip   │→│ RequestLoggingMiddleware  │    │
    │  └──────────┘ └──────────┘ └───────────────────────────┘    │
    │                                                              │
    │  Per-route middleware chain (decides every request):         │
    │  ┌──────────────┐ ┌─────────────┐ ┌──────┐ ┌──────┐ ┌─────┐ │
    │  │ErrorBoundary │→│ Correlation │→│ CSRF │→│ Auth │→│Body │ │
    │  └──────────────┘ └─────────────┘ └──────┘ └──────┘ └─────┘ │
    │                                                              │
    │  Routes: /health  /api/csrf  /api/accounts  /api/account/... │
    │          /api/organizations/...  /api/feedback               │
    └──────────────────────────────────────────────────────────────┘

Error handling:
    There are no app-level exception handlers for pipeline errors. Each
    route's chain starts with an ErrorBoundary, which is the only place a
    failure becomes a response.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from usermgmt import __version__
from usermgmt.config import settings
from usermgmt.middleware.correlation import CorrelationIdLogFilter
from usermgmt.middleware.logging import RequestLoggingMiddleware
from usermgmt.routes import accounts, csrf, feedback, health, organizations
from usermgmt.services import ServiceRegistry, build_in_memory_registry

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s] %(message)s

    The correlation filter sits on the handler (not a logger) so records
    from every module, including third-party ones, get the field.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("UserMgmt Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: health checks and token issuance still work, and
        # authenticated routes answer auth/unauthenticated
        logger.error("Configuration error: %s", str(e))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(services: Optional[ServiceRegistry] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        services: Service registry handed to route handlers as ctx.services.
                  Defaults to the in-memory implementations.
    """
    app = FastAPI(
        title="UserMgmt API",
        description=(
            "Multi-tenant account management API. Mutating requests require the "
            "CSRF token from GET /api/csrf; authenticated routes require a bearer "
            "access token."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.services = services or build_in_memory_registry()

    # ── Register Middleware ───────────────────────────────────────────────
    # Starlette runs these in REVERSE order of addition; they only observe.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # CSRF and access-token cookies
        allow_methods=["*"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            settings.csrf_header,
            settings.correlation_header,
        ],
        expose_headers=[settings.correlation_header],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(csrf.router)
    app.include_router(accounts.router)
    app.include_router(organizations.router)
    app.include_router(feedback.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `usermgmt.main:app` to be importable
app = create_app()
