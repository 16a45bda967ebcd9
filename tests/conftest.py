"""
Pytest Configuration and Shared Test Fixtures

This module provides reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import pytest

from backoffice_cache.core.config.settings import Settings
from backoffice_cache.infrastructure.cache import CacheFacade, build_value_store
from backoffice_cache.infrastructure.monitoring import MetricsCollector
from tests.test_fixtures.cache_factory import FakeClock, InMemoryRedis, make_settings

# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    """Local-only settings (no Redis)."""
    return make_settings()


@pytest.fixture
def remote_settings() -> Settings:
    """Settings with the remote tier enabled."""
    return make_settings(REDIS_ENABLED=True)


# ============================================================================
# Infrastructure Doubles
# ============================================================================


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    """In-memory redis.asyncio client double."""
    return InMemoryRedis()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector(latency_window=100)


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest.fixture(scope="function")
async def cache(settings, fake_clock, metrics):
    """Local-only CacheFacade on a fake clock."""
    facade = CacheFacade(settings, metrics=metrics, clock=fake_clock)
    await facade.init()
    yield facade
    await facade.shutdown()


@pytest.fixture(scope="function")
async def remote_cache(remote_settings, fake_clock, fake_redis, metrics):
    """CacheFacade with both tiers, Redis replaced by the in-memory double."""
    store = build_value_store(remote_settings, clock=fake_clock, redis=fake_redis)
    facade = CacheFacade(remote_settings, store=store, metrics=metrics, clock=fake_clock)
    await facade.init()
    yield facade
    await facade.shutdown()
