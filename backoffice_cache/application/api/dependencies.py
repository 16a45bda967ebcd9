"""
FastAPI Dependency Injection Module
===================================

Providers for the objects the lifespan manager builds once at startup and
stores on ``app.state``:

- ``app.state.cache``: CacheFacade
- ``app.state.invalidator``: DomainInvalidator
- ``app.state.health_checker``: HealthChecker

WHY app.state INSTEAD OF MODULE GLOBALS?
----------------------------------------
- The objects are explicitly tied to one app instance (tests build their own)
- Their lifecycle is owned by the lifespan manager (init / shutdown)

Example:
    @router.get("/stats")
    async def stats(cache: CacheDep):
        return cache.metrics.get_all_stats()
"""

from typing import Annotated

from fastapi import Depends, Request

from backoffice_cache.infrastructure.cache import CacheFacade, DomainInvalidator
from backoffice_cache.infrastructure.monitoring import HealthChecker


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(
            f"{name} not initialized in app.state. "
            "This indicates the application lifespan startup didn't complete properly."
        )
    return value


def get_cache(request: Request) -> CacheFacade:
    """Retrieve the CacheFacade built during startup."""
    return _state(request, "cache")


def get_invalidator(request: Request) -> DomainInvalidator:
    """Retrieve the DomainInvalidator built during startup."""
    return _state(request, "invalidator")


def get_health_checker(request: Request) -> HealthChecker:
    """Retrieve the HealthChecker built during startup."""
    return _state(request, "health_checker")


# ============================================================================
# TYPE ALIASES FOR CLEANER ROUTE SIGNATURES
# ============================================================================

CacheDep = Annotated[CacheFacade, Depends(get_cache)]
InvalidatorDep = Annotated[DomainInvalidator, Depends(get_invalidator)]
HealthCheckerDep = Annotated[HealthChecker, Depends(get_health_checker)]
