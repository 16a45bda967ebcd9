"""
Unit Tests for NamespacedCache

Tests typed round trips through both tiers and namespace-wide invalidation.
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import BaseModel

from backoffice_cache.infrastructure.cache import CacheFacade, NamespacedCache, build_value_store
from backoffice_cache.infrastructure.monitoring import MetricsCollector


class InvoiceRow(BaseModel):
    id: int
    total: Decimal
    issued_on: date


class InvoicePage(BaseModel):
    items: list[InvoiceRow]
    page: int
    total_count: int


def _page(page: int = 1) -> InvoicePage:
    return InvoicePage(
        items=[InvoiceRow(id=1, total=Decimal("12.50"), issued_on=date(2024, 3, 1))],
        page=page,
        total_count=1,
    )


@pytest.mark.unit
class TestNamespacedCache:
    """Test the typed namespace view."""

    @pytest.fixture
    def invoices(self, cache):
        return NamespacedCache("invoices", InvoicePage, cache)

    def test_key_uses_codec(self, invoices):
        """Test keys are built from keyword params."""
        assert invoices.key(status="paid", page=1, shopId=None) == "invoices:page:!i1:status:paid"

    async def test_get_or_set_returns_model(self, invoices):
        """Test a computed value comes back as the declared type."""
        result = await invoices.get_or_set(lambda: _page(2), status="paid", page=2)

        assert isinstance(result, InvoicePage)
        assert result == _page(2)

    async def test_cached_value_is_json_compatible(self, invoices, cache):
        """Test the stored form is plain JSON data, not the model instance."""
        await invoices.set(_page(), page=1)

        raw = await cache.get(invoices.key(page=1))

        assert isinstance(raw, dict)
        assert raw["items"][0]["total"] == "12.50"
        assert await invoices.get(page=1) == _page()

    async def test_get_missing_returns_none(self, invoices):
        """Test a miss is None, not a validation error."""
        assert await invoices.get(page=99) is None

    async def test_async_compute(self, invoices):
        """Test an async compute function."""

        async def load():
            return _page(3)

        assert (await invoices.get_or_set(load, page=3)).page == 3

    async def test_delete_and_invalidate(self, invoices, cache):
        """Test delete removes one key and invalidate the whole namespace."""
        await invoices.set(_page(1), page=1)
        await invoices.set(_page(2), page=2)
        await cache.set("invoices", {"root": True})
        await cache.set("invoice-statistics", {"count": 2})

        assert await invoices.delete(page=1) is True
        assert await invoices.invalidate() == 2
        assert await cache.get("invoice-statistics") == {"count": 2}

    async def test_typed_value_through_remote_tier(self, remote_settings, remote_cache, fake_redis, fake_clock):
        """Test another process reads the same typed value from Redis."""
        await NamespacedCache("invoices", InvoicePage, remote_cache).set(_page(), page=1)

        other = CacheFacade(
            remote_settings,
            store=build_value_store(remote_settings, clock=fake_clock, redis=fake_redis),
            metrics=MetricsCollector(),
            clock=fake_clock,
        )
        await other.init()
        try:
            assert await NamespacedCache("invoices", InvoicePage, other).get(page=1) == _page()
        finally:
            await other.shutdown()
