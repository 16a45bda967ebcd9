"""
Health Check Routes
===================

Status of the cache tiers for load balancers and operators.

- ``GET /health``: quick status for load balancers
- ``GET /health/cache``: raw tier probe {local, remote}
- ``GET /health/detailed``: adds Redis pool metrics and namespace stats

A Redis outage reports "degraded" with HTTP 200: the cache still serves
from the local tier, so the instance should keep receiving traffic. Only an
unusable local tier answers 503.
"""

from fastapi import APIRouter, HTTPException, status

from backoffice_cache.application.api.dependencies import HealthCheckerDep
from backoffice_cache.application.api.models import CacheHealthResponse, HealthResponse
from backoffice_cache.infrastructure.monitoring.health_checker import HealthStatus

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=HealthResponse)
async def health_check(health_checker: HealthCheckerDep):
    """
    Quick health check endpoint for load balancers.

    HTTP Status Codes:
        200: healthy or degraded
        503: local tier unusable
    """
    result = await health_checker.check_health()
    if result["status"] == HealthStatus.UNHEALTHY.value:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@router.get("/cache", response_model=CacheHealthResponse)
async def cache_health(health_checker: HealthCheckerDep):
    """Probe both tiers: {"local": bool, "remote": bool} plus overall status."""
    return await health_checker.check_cache()


@router.get("/detailed")
async def detailed_health(health_checker: HealthCheckerDep):
    """
    Detailed health report for debugging and dashboards.

    Always returns 200; the status is in the body.
    """
    return await health_checker.detailed_health_report()
