"""
Typed namespace views over the cache facade.

    invoice_pages = NamespacedCache("invoices", InvoicePage, cache)
    page = await invoice_pages.get_or_set(load_page, status="paid", page=1)

Values are dumped to JSON-compatible form with a pydantic TypeAdapter before
they are stored and validated back into the declared type when read, so the
same data comes back typed whether it was served by the local or the remote
tier.
"""

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter

from backoffice_cache.infrastructure.cache.cache_facade import CacheFacade, invoke_compute
from backoffice_cache.infrastructure.cache.key_codec import KeyCodec

T = TypeVar("T")


class NamespacedCache(Generic[T]):
    """
    Cache view bound to one namespace and one value type.

    Responsibility: Key building from keyword params and typed (de)serialization.
    """

    def __init__(self, namespace: str, value_type: Any, cache: CacheFacade, ttl_seconds: int | None = None):
        """
        Args:
            namespace: Base name of every key built by this view
            value_type: Type the cached values validate into
            cache: Underlying facade
            ttl_seconds: Fresh lifetime; defaults to the namespace policy
        """
        self._namespace = namespace
        self._adapter: TypeAdapter[T] = TypeAdapter(value_type)
        self._cache = cache
        self._ttl_seconds = ttl_seconds

    @property
    def namespace(self) -> str:
        return self._namespace

    def key(self, **params: Any) -> str:
        """Canonical key for ``params`` within this namespace."""
        return KeyCodec.encode(self._namespace, params)

    async def get(self, **params: Any) -> T | None:
        raw = await self._cache.get(self.key(**params))
        if raw is None:
            return None
        return self._adapter.validate_python(raw)

    async def set(self, value: T, **params: Any) -> None:
        await self._cache.set(self.key(**params), self._dump(value), ttl_seconds=self._ttl_seconds)

    async def get_or_set(self, compute_fn: Callable[[], Any], **params: Any) -> T:
        """
        Read-through lookup with typed values.

        compute_fn returns a ``T`` (or an awaitable of one); it is dumped before
        storing, and every result, cached or fresh, is validated into ``T``.
        """

        async def compute() -> Any:
            return self._dump(await invoke_compute(compute_fn))

        raw = await self._cache.get_or_set(self.key(**params), compute, ttl_seconds=self._ttl_seconds)
        return self._adapter.validate_python(raw)

    async def delete(self, **params: Any) -> bool:
        return await self._cache.delete(self.key(**params))

    async def invalidate(self) -> int:
        """Remove every key of this namespace, including the bare root key."""
        return await self._cache.invalidate_pattern(f"{self._namespace}:*")

    def _dump(self, value: T) -> Any:
        return self._adapter.dump_python(value, mode="json")
