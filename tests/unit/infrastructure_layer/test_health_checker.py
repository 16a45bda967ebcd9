"""
Unit Tests for HealthChecker

Tests tier probing, status aggregation and the detailed report.
"""

import time
from unittest.mock import patch

import pytest

from backoffice_cache.infrastructure.monitoring import HealthChecker, HealthStatus
from backoffice_cache.infrastructure.monitoring.health_checker import tier_status


@pytest.mark.unit
class TestTierStatus:
    """Test status aggregation."""

    @pytest.mark.parametrize(
        "probe, remote_configured, expected",
        [
            ({"local": True, "remote": True}, True, HealthStatus.HEALTHY),
            ({"local": True, "remote": False}, True, HealthStatus.DEGRADED),
            ({"local": True, "remote": False}, False, HealthStatus.HEALTHY),
            ({"local": False, "remote": True}, True, HealthStatus.UNHEALTHY),
        ],
    )
    def test_tier_status(self, probe, remote_configured, expected):
        """Test local failure is fatal and remote failure only degrades."""
        assert tier_status(probe, remote_configured) is expected


@pytest.mark.unit
class TestHealthChecker:
    """Test the health checker against real facades."""

    async def test_uninitialized_is_unhealthy(self, settings):
        """Test a checker without a cache reports unhealthy."""
        checker = HealthChecker(settings)

        result = await checker.check_cache()

        assert result["status"] == "unhealthy"

    async def test_local_only(self, settings, cache):
        """Test a local-only cache is healthy with remote not configured."""
        checker = HealthChecker(settings)
        await checker.initialize(cache)

        health = await checker.check_health()

        assert health["status"] == "healthy"
        assert health["version"] == "1.0.0-test"
        assert health["components"] == {"local": "healthy", "remote": "not_configured"}

    async def test_remote_down_is_degraded(self, remote_settings, remote_cache, fake_redis):
        """Test a Redis outage reports degraded."""
        checker = HealthChecker(remote_settings)
        await checker.initialize(remote_cache)
        fake_redis.down = True

        health = await checker.check_health()

        assert health["status"] == "degraded"
        assert health["components"]["remote"] == "unhealthy"

    async def test_local_failure_is_unhealthy(self, settings, cache):
        """Test an unusable local tier reports unhealthy."""
        checker = HealthChecker(settings)
        await checker.initialize(cache)

        with patch.object(cache.store.local, "probe", return_value=False):
            result = await checker.check_cache()

        assert result["status"] == "unhealthy"
        assert result["local"] is False

    async def test_detailed_report(self, remote_settings, remote_cache):
        """Test the detailed report includes tier sizes, Redis and namespace stats."""
        checker = HealthChecker(remote_settings)
        await checker.initialize(remote_cache)
        await remote_cache.get_or_set("reports:a", lambda: 1)

        report = await checker.detailed_health_report()

        assert report["status"] == "healthy"
        assert report["components"]["cache"]["local_size"] == 1
        assert report["components"]["cache"]["local_max_size"] == 100
        assert report["components"]["redis"]["status"] == "healthy"
        assert report["namespaces"]["reports"]["misses"] == 1

    async def test_detailed_report_local_only(self, settings, cache):
        """Test Redis is reported as not configured for local-only caches."""
        checker = HealthChecker(settings)
        await checker.initialize(cache)

        report = await checker.detailed_health_report()

        assert report["components"]["redis"] == {"status": "not_configured"}

    async def test_detailed_report_with_hanging_redis(self, remote_settings, remote_cache, fake_redis):
        """Test a hanging Redis cannot stall the detailed report."""
        checker = HealthChecker(remote_settings)
        await checker.initialize(remote_cache)
        fake_redis.delay = 2.0

        start = time.perf_counter()
        report = await checker.detailed_health_report()

        assert time.perf_counter() - start < 1.0
        assert report["status"] == "degraded"
        assert report["components"]["cache"]["remote"] is False
        assert report["components"]["redis"]["status"] == "unhealthy"
