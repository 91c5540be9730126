"""
FastAPI Application Entry Point.

This is the main application file for the Cargo Tracking Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from cargo_backend.app.core.config import settings
from cargo_backend.app.api.v1.router import router as api_v1_router
from cargo_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from cargo_backend.app.core.redis_client import close_redis, ping_redis
from cargo_backend.app.db.session import create_tables
from cargo_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from cargo_backend.app.models.branch import Branch  # noqa: F401
from cargo_backend.app.models.user import User  # noqa: F401
from cargo_backend.app.models.setting import Setting  # noqa: F401
from cargo_backend.app.models.tracking_item import TrackingItem  # noqa: F401
from cargo_backend.app.models.manifest_entry import ManifestEntry  # noqa: F401
from cargo_backend.app.models.status_history import StatusHistory  # noqa: F401
from cargo_backend.app.models.import_log import ImportLog  # noqa: F401

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Closes the Redis connection pool on shutdown.
    """
    await create_tables()
    yield
    await close_redis()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Parcel tracking, manifest reconciliation and branch notifications for cargo delivery",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Redis being down degrades the settings cache only, so it is reported
    but does not make the service unhealthy.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Cargo Tracking Backend API",
        "docs": "/docs",
        "health": "/health",
    }
