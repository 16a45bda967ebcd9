#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Operational HTTP surface of the back-office cache: health, statistics,
invalidation and Prometheus metrics. The business pages use the cache as a
library; this app is what operators and monitoring talk to.
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backoffice_cache.application.api.routes.admin import router as admin_router
from backoffice_cache.application.api.routes.health import router as health_router
from backoffice_cache.application.api.routes.metrics import router as metrics_router
from backoffice_cache.core.config.constants import API_PREFIX, HEADER_REQUEST_ID
from backoffice_cache.core.config.settings import Settings, get_settings
from backoffice_cache.core.exceptions import BackofficeCacheError, InvalidCachePatternError
from backoffice_cache.core.logging.logger import (
    clear_request_id,
    get_logger,
    set_request_id,
    setup_logging,
)
from backoffice_cache.infrastructure.cache import CacheFacade, DomainInvalidator
from backoffice_cache.infrastructure.monitoring import HealthChecker

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).

    Builds the cache facade, the domain invalidator and the health checker,
    stores them on app.state for dependencies.py, and shuts the facade down
    on exit (cancels background refreshes, closes the Redis pool).
    """
    settings: Settings = app.state.settings

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting back-office cache service",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    cache = CacheFacade(settings)
    try:
        await cache.init()
        logger.info("Cache initialized", remote_configured=cache.remote_configured)

        invalidator = DomainInvalidator(cache)

        health_checker = HealthChecker(settings)
        await health_checker.initialize(cache)

        app.state.cache = cache
        app.state.invalidator = invalidator
        app.state.health_checker = health_checker

        logger.info("Application startup complete")

        yield

    finally:
        logger.info("Shutting down application")
        await cache.shutdown()
        logger.info("Application shutdown complete")


# ============================================================================
# Application Factory
# ============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to run with (defaults to get_settings())

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Operational API of the back-office read-through cache",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)
    app.include_router(metrics_router, prefix=API_PREFIX)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Inject a request ID into all requests for log correlation."""
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)

        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id
            return response
        finally:
            clear_request_id()

    @app.exception_handler(InvalidCachePatternError)
    async def invalid_pattern_handler(request: Request, exc: InvalidCachePatternError):
        """Unsupported invalidation patterns are client errors."""
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(BackofficeCacheError)
    async def cache_exception_handler(request: Request, exc: BackofficeCacheError):
        """Handle cache-layer exceptions."""
        logger.error(
            f"Cache exception: {exc.message}", error_type=type(exc).__name__, request_id=exc.request_id
        )
        return JSONResponse(status_code=500, content=exc.to_dict())

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{API_PREFIX}/health",
        }

    return app


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
