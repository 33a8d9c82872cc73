"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from fietsroute.api.deps import build_coordinator
from fietsroute.api.v1.router import api_router
from fietsroute.config import settings
from fietsroute.core.exceptions import register_exception_handlers
from fietsroute.db.session import async_session_maker, engine, init_db
from fietsroute.middleware import RequestLoggingMiddleware, setup_logging
from fietsroute.services.route_store import SqlRouteStore


# Setup logging early
setup_logging()
logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """
    Validate configuration at startup.
    Exits with error in production if requirements are not met.
    """
    errors = settings.validate_production_settings()

    if errors:
        logger.error("=" * 60)
        logger.error("CONFIGURATION ERRORS")
        logger.error("=" * 60)
        for error in errors:
            logger.error(f"  - {error}")
        logger.error("=" * 60)

        if settings.is_production():
            logger.critical("Refusing to start in production with unsafe configuration!")
            sys.exit(1)

    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Offline only: {settings.offline_only}")
    logger.info(f"OpenRouteService key configured: {bool(settings.ors_api_key)}")
    logger.info(f"Debug Mode: {settings.debug}")


async def migrate_stored_routes(session_maker) -> int:
    """Rewrite saved routes still in a legacy encoding. Failures are logged."""
    try:
        return await SqlRouteStore(session_maker).migrate_legacy_records()
    except SQLAlchemyError as e:
        logger.error(f"Route migration failed: {e}")
        return 0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    logger.info(f"Starting {settings.app_name}...")

    validate_startup_configuration()

    # Create database tables if they don't exist
    try:
        await init_db()
        logger.info("Database connection established")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        if settings.is_production():
            sys.exit(1)

    if settings.migrate_routes_on_startup:
        await migrate_stored_routes(async_session_maker)

    client = httpx.AsyncClient(timeout=30.0)
    app.state.coordinator = build_coordinator(settings, async_session_maker, client=client)

    logger.info(f"{settings.app_name} started successfully")

    yield

    logger.info("Shutting down...")
    await client.aclose()
    logger.info("HTTP clients closed")
    await engine.dispose()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    description="""
Cycling route planning API.

Routes are calculated with OpenRouteService, falling back to Valhalla and
finally to a straight-line offline estimate. Recent nearby requests are
served from an in-memory cache.

## Error Responses

All errors follow a consistent format:
```json
{
  "error": {
    "code": "ERROR_CODE",
    "message": "Human-readable message",
    "request_id": "abc123"
  }
}
```
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production() else None,
    redoc_url="/redoc" if not settings.is_production() else None,
    openapi_url="/openapi.json" if not settings.is_production() else None,
)

# ============================================================================
# Register Exception Handlers (before middleware)
# ============================================================================
register_exception_handlers(app)

# ============================================================================
# Middleware Stack (order matters - first added = last executed)
# ============================================================================

# 1. Request logging (outermost - captures everything)
app.add_middleware(RequestLoggingMiddleware)

# 2. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=["X-Request-ID"],
    max_age=600,  # Cache preflight for 10 minutes
)


# ============================================================================
# API Routes
# ============================================================================

app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint with API information.
    """
    response = {
        "name": settings.app_name,
        "version": "1.0.0",
        "health": "/health",
    }

    if not settings.is_production():
        response["docs"] = "/docs"
        response["redoc"] = "/redoc"

    return response
