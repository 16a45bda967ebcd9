#!/usr/bin/env python3
"""
Health Checker Module

Health of the cache tiers:
- Local tier usability
- Redis connectivity (when configured)
- Per-namespace cache statistics in the detailed report

A Redis outage makes the service degraded, not unhealthy: the cache keeps
serving from the local tier.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from backoffice_cache.core.config.settings import get_settings
from backoffice_cache.core.logging.logger import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def tier_status(probe: dict[str, bool], remote_configured: bool) -> HealthStatus:
    """
    Overall status from a {"local", "remote"} probe.

    Local down -> unhealthy; configured remote down -> degraded.
    """
    if not probe.get("local"):
        return HealthStatus.UNHEALTHY
    if remote_configured and not probe.get("remote"):
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


class HealthChecker:
    """
    Health checker for the cache layer.

    STAGE-H: Health check orchestration

    Usage:
        checker = HealthChecker(settings)
        await checker.initialize(cache)

        status = await checker.check_health()
        report = await checker.detailed_health_report()
    """

    def __init__(self, settings=None):
        """Initialize health checker."""
        self.settings = settings or get_settings()
        self._cache = None

        logger.info("Health checker initialized", stage="H.0")

    async def initialize(self, cache) -> None:
        """
        Initialize health checker with dependencies.

        Args:
            cache: CacheFacade whose tiers are probed
        """
        self._cache = cache
        logger.info("Health checker dependencies set", stage="H.0.1")

    async def check_cache(self) -> dict[str, Any]:
        """
        Probe both tiers.

        STAGE-H.1: Cache tier probe

        Returns:
            Dict with status, local, remote and remote_configured
        """
        if self._cache is None:
            return {
                "status": HealthStatus.UNHEALTHY.value,
                "local": False,
                "remote": False,
                "remote_configured": False,
            }

        probe = await self._cache.health_check()
        remote_configured = self._cache.remote_configured
        status = tier_status(probe, remote_configured)

        if status != HealthStatus.HEALTHY:
            logger.warning("Cache tiers degraded", stage="H.1", status=status.value, **probe)

        return {
            "status": status.value,
            "local": probe["local"],
            "remote": probe["remote"],
            "remote_configured": remote_configured,
        }

    async def check_health(self) -> dict[str, Any]:
        """
        Quick health check.

        STAGE-H.1: Quick health status

        Returns:
            Dict with status and per-component state
        """
        cache = await self.check_cache()

        if not cache["remote_configured"]:
            remote_state = "not_configured"
        else:
            remote_state = "healthy" if cache["remote"] else "unhealthy"

        return {
            "status": cache["status"],
            "timestamp": _timestamp(),
            "version": self.settings.app.APP_VERSION,
            "components": {
                "local": "healthy" if cache["local"] else "unhealthy",
                "remote": remote_state,
            },
        }

    async def detailed_health_report(self) -> dict[str, Any]:
        """
        Detailed health report.

        STAGE-H.2: Detailed health report

        Returns:
            Dict with tier details, Redis pool metrics and namespace stats
        """
        cache = await self.check_cache()
        report: dict[str, Any] = {
            "status": cache["status"],
            "timestamp": _timestamp(),
            "version": self.settings.app.APP_VERSION,
            "environment": self.settings.app.ENVIRONMENT,
            "components": {"cache": cache},
            "namespaces": {},
        }

        if self._cache is None:
            return report

        local = self._cache.store.local
        cache["local_size"] = local.get_size()
        cache["local_max_size"] = local.get_max_size()
        cache["pending_refreshes"] = self._cache.pending_refreshes

        remote = self._cache.store.remote
        if remote is not None:
            report["components"]["redis"] = await remote.client.health_check()
        else:
            report["components"]["redis"] = {"status": "not_configured"}

        report["namespaces"] = self._cache.metrics.get_all_stats()
        return report
