#!/usr/bin/env python3
"""
Read-Through Cache Facade

Architecture:
    CacheFacade (Public API)
        ├── ValueStore (local→remote coordination)
        │   ├── LocalTier (In-memory LRU)
        │   └── RemoteTier (Redis, optional)
        ├── In-flight map (one populate task per key, shared by
        │   foreground misses and background refreshes)
        └── MetricsCollector (hits, misses, errors, latency)

Lookup flow of get_or_set(key, compute_fn):
    fresh entry            -> return it                         (fresh hit)
    stale, servable entry  -> return it, refresh in background  (stale hit)
    absent / past stale    -> compute once per key, store, return (miss)
    compute failed         -> serve entry within error grace, or re-raise
    invalidated meanwhile  -> return to current waiters, do not store

The facade is an explicit instance: bootstrap code calls init() before use
and shutdown() on exit. Nothing here is a module-level singleton.
"""

import asyncio
import functools
import inspect
import time
from collections.abc import Callable, Iterable
from typing import Any

from backoffice_cache.core.config.constants import ErrorKind, Stage
from backoffice_cache.core.config.settings import NamespacePolicy, get_settings
from backoffice_cache.core.exceptions import CacheSerializationError
from backoffice_cache.core.logging.logger import get_logger, log_stage
from backoffice_cache.infrastructure.cache.entry import CacheEntry, Clock
from backoffice_cache.infrastructure.cache.key_codec import KeyCodec
from backoffice_cache.infrastructure.cache.local_tier import LocalTier
from backoffice_cache.infrastructure.cache.redis_client import RedisClient
from backoffice_cache.infrastructure.cache.remote_tier import RemoteTier
from backoffice_cache.infrastructure.cache.result import StoreResult
from backoffice_cache.infrastructure.cache.value_store import ValueStore
from backoffice_cache.infrastructure.monitoring.metrics_collector import MetricsCollector

logger = get_logger(__name__)

ComputeFn = Callable[[], Any]


def build_value_store(settings, clock: Clock = time.time, redis=None) -> ValueStore:
    """
    Assemble the tiers from settings.

    Args:
        settings: Application settings
        clock: Source of "now" in epoch seconds
        redis: Optional pre-built redis.asyncio client (tests inject a double)

    Returns:
        ValueStore with a remote tier only when REDIS_ENABLED is set
    """
    cache_settings = settings.cache
    local = LocalTier(cache_settings.CACHE_L1_MAX_SIZE, clock=clock)

    remote = None
    if settings.redis.REDIS_ENABLED:
        remote = RemoteTier(
            RedisClient(settings, client=redis),
            key_prefix=cache_settings.CACHE_KEY_PREFIX,
            timeout_ms=cache_settings.CACHE_REMOTE_TIMEOUT_MS,
            scan_timeout_ms=cache_settings.CACHE_REMOTE_SCAN_TIMEOUT_MS,
            clock=clock,
        )
    return ValueStore(local, remote)


class CacheFacade:
    """
    Read-through cache with stale-while-revalidate and single-flight.

    Responsibility: Freshness policy, compute coordination, and turning
    degraded store results into logs and metrics.

    Usage:
        cache = CacheFacade(settings)
        await cache.init()

        invoices = await cache.get_or_set(
            KeyCodec.encode("invoices", {"status": "paid", "page": 1}),
            lambda: repo.list_invoices(status="paid", page=1),
        )

        await cache.shutdown()

    Why one task per key instead of a lock?
    - Concurrent callers for a cold key await the same task, so compute_fn
      runs once and every caller sees the same value or the same exception
    - A caller that is cancelled does not cancel the computation others
      are waiting on
    - Background refreshes join the same map, so a refresh and a foreground
      miss never compute the same key twice
    """

    def __init__(
        self,
        settings=None,
        store: ValueStore | None = None,
        metrics: MetricsCollector | None = None,
        clock: Clock = time.time,
    ):
        """
        Initialize the facade.

        STAGE-0.4: Cache facade construction

        Args:
            settings: Application settings (defaults to get_settings())
            store: Pre-built ValueStore (defaults to one built from settings)
            metrics: Metrics collector (defaults to a new one)
            clock: Source of "now" in epoch seconds
        """
        self._settings = settings or get_settings()
        self._cache_settings = self._settings.cache
        self._clock = clock
        self._store = store or build_value_store(self._settings, clock=clock)
        self._metrics = metrics or MetricsCollector(
            latency_window=self._cache_settings.CACHE_LATENCY_WINDOW, settings=self._settings
        )

        self._inflight: dict[str, asyncio.Task] = {}
        # Flights detached by an invalidation: they still answer their
        # waiters but must not store what they computed
        self._superseded: set[asyncio.Task] = set()
        self._refresh_tasks: set[asyncio.Task] = set()
        self._initialized = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def init(self) -> None:
        """
        Connect the remote tier.

        STAGE-0.5: Cache initialization

        A Redis outage here is logged and the cache starts local-only.
        """
        if self._initialized:
            return

        await self._store.connect()
        self._initialized = True

        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Cache facade initialized",
            enabled=self.enabled,
            remote_configured=self._store.remote_configured,
            local_max_size=self._cache_settings.CACHE_L1_MAX_SIZE,
        )

    async def shutdown(self) -> None:
        """
        Cancel pending refreshes and populates, then disconnect Redis.

        STAGE-6.0: Cache shutdown
        """
        pending = set(self._inflight.values()) | self._superseded | self._refresh_tasks
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._inflight.clear()
        self._superseded.clear()
        self._refresh_tasks.clear()

        await self._store.close()
        self._initialized = False

        log_stage(logger, Stage.SHUTDOWN, "Cache facade shut down", cancelled=len(pending))

    async def drain_refreshes(self) -> int:
        """
        Wait for in-flight background refreshes to finish.

        Returns:
            Number of refresh tasks awaited
        """
        drained = 0
        while self._refresh_tasks:
            batch = list(self._refresh_tasks)
            drained += len(batch)
            await asyncio.gather(*batch, return_exceptions=True)
        return drained

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def enabled(self) -> bool:
        return self._cache_settings.CACHE_ENABLED

    @property
    def settings(self):
        return self._settings

    @property
    def store(self) -> ValueStore:
        return self._store

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def remote_configured(self) -> bool:
        return self._store.remote_configured

    @property
    def pending_refreshes(self) -> int:
        return len(self._refresh_tasks)

    def policy_for(self, namespace: str) -> NamespacePolicy:
        return self._cache_settings.policy_for(namespace)

    # =========================================================================
    # Read / write
    # =========================================================================

    async def get(self, key: str) -> Any | None:
        """
        Get a cached value.

        STAGE-2.0: Cache lookup

        Returns:
            The value if fresh or within its stale window, else None
        """
        if not self.enabled:
            return None

        start = time.perf_counter()
        namespace = KeyCodec.namespace_of(key)
        entry = self._collapse(await self._store.read(key), namespace, "read", key=key)
        now = self._clock()

        if entry is None or not entry.is_servable(now):
            self._metrics.record_miss(namespace, _elapsed_ms(start))
            return None

        self._metrics.record_hit(namespace, _elapsed_ms(start), stale=not entry.is_fresh(now))
        return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """
        Store a value.

        STAGE-2.3: Cache population

        Args:
            key: Cache key (see KeyCodec.encode)
            value: JSON-compatible value or bytes
            ttl_seconds: Fresh lifetime; defaults to the namespace TTL
        """
        if not self.enabled:
            return

        entry = self._build_entry(key, value, ttl_seconds)
        self._collapse(await self._store.write(entry), entry_namespace(key), "write", key=key)

    async def get_or_set(
        self, key: str, compute_fn: ComputeFn, ttl_seconds: int | None = None
    ) -> Any:
        """
        Return the cached value, computing and storing it on a miss.

        STAGE-2.0: Read-through lookup

        Args:
            key: Cache key (see KeyCodec.encode)
            compute_fn: Zero-argument callable; may be async, sync, or return
                an awaitable
            ttl_seconds: Fresh lifetime; defaults to the namespace TTL

        Returns:
            Cached or freshly computed value

        Raises:
            Exception: Whatever compute_fn raised, unchanged, unless an entry
                within its error grace window can be served instead
        """
        if not self.enabled:
            return await invoke_compute(compute_fn)

        start = time.perf_counter()
        namespace = KeyCodec.namespace_of(key)
        entry = self._collapse(await self._store.read(key), namespace, "read", key=key)
        now = self._clock()

        if entry is not None and entry.is_fresh(now):
            self._metrics.record_hit(namespace, _elapsed_ms(start))
            return entry.value

        if entry is not None and entry.is_servable(now):
            self._schedule_refresh(key, compute_fn, ttl_seconds)
            self._metrics.record_hit(namespace, _elapsed_ms(start), stale=True)
            log_stage(logger, Stage.CACHE_LOOKUP, "Serving stale entry", level="debug", key=key)
            return entry.value

        try:
            value = await asyncio.shield(self._flight(key, compute_fn, ttl_seconds))
        except Exception as exc:
            self._metrics.record_error(namespace, ErrorKind.COMPUTE, latency_ms=_elapsed_ms(start))
            if (
                entry is not None
                and self.policy_for(namespace).error_grace_seconds > 0
                and entry.within_grace(self._clock())
            ):
                log_stage(
                    logger,
                    Stage.CACHE_LOOKUP,
                    "Compute failed, serving entry within error grace",
                    level="warning",
                    key=key,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return entry.value
            raise

        self._metrics.record_miss(namespace, _elapsed_ms(start))
        return value

    # =========================================================================
    # Invalidation
    # =========================================================================

    async def delete(self, key: str) -> bool:
        """
        Remove a key from both tiers. Deleting a missing key is a no-op.

        STAGE-2.4: Cache invalidation
        """
        self._supersede_flights(lambda inflight_key: inflight_key == key)
        return self._collapse(await self._store.remove(key), entry_namespace(key), "delete", key=key)

    async def try_invalidate_pattern(self, pattern: str) -> StoreResult[int]:
        """
        Remove every key matched by ``prefix*`` or an exact key.

        Computations already running for matched keys are detached first,
        so a value read before the change is never stored afterwards. The
        remote error, if any, is returned rather than logged.

        Raises:
            InvalidCachePatternError: For unsupported wildcard placement
        """
        prefix, is_prefix = KeyCodec.parse_pattern(pattern)
        self._supersede_flights(lambda inflight_key: KeyCodec.matches(inflight_key, prefix, is_prefix))

        result = await self._store.remove_by_pattern(pattern)
        log_stage(
            logger,
            Stage.CACHE_INVALIDATION,
            "Pattern invalidated",
            pattern=pattern,
            removed=result.value,
            degraded=result.degraded,
        )
        return result

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Remove every key matched by ``prefix*`` or an exact key.

        Returns:
            Number of keys removed
        """
        result = await self.try_invalidate_pattern(pattern)
        return self._collapse(result, entry_namespace(pattern), "invalidate", pattern=pattern)

    async def clear(self) -> int:
        """
        Remove all entries.

        The remote side is limited to CACHE_KEY_PREFIX and skipped when
        CACHE_REMOTE_CLEAR_ENABLED is off.
        """
        self._supersede_flights(lambda inflight_key: True)
        result = await self._store.clear(include_remote=self._cache_settings.CACHE_REMOTE_CLEAR_ENABLED)
        log_stage(logger, Stage.CACHE_INVALIDATION, "Cache cleared", removed=result.value)
        return self._collapse(result, None, "clear")

    # =========================================================================
    # Warming
    # =========================================================================

    async def warm(self, items: Iterable[tuple]) -> int:
        """
        Pre-load entries concurrently.

        Args:
            items: ``(key, compute_fn)`` or ``(key, compute_fn, ttl_seconds)``

        Returns:
            Number of keys loaded; failures are logged and skipped
        """
        if not self.enabled:
            return 0

        jobs = []
        keys = []
        for item in items:
            key, compute_fn, *rest = item
            keys.append(key)
            jobs.append(asyncio.shield(self._flight(key, compute_fn, rest[0] if rest else None)))

        results = await asyncio.gather(*jobs, return_exceptions=True)

        loaded = 0
        for key, outcome in zip(keys, results):
            if isinstance(outcome, Exception):
                self._metrics.record_error(KeyCodec.namespace_of(key), ErrorKind.COMPUTE)
                log_stage(
                    logger,
                    Stage.CACHE_POPULATION,
                    "Cache warm-up failed for key",
                    level="warning",
                    key=key,
                    error=str(outcome),
                )
            else:
                loaded += 1

        log_stage(logger, Stage.CACHE_POPULATION, "Cache warm-up complete", loaded=loaded, requested=len(keys))
        return loaded

    async def get_or_set_many(self, items: Iterable[tuple]) -> list[Any]:
        """
        Read through several keys at once.

        Each key goes through get_or_set, so cached keys are answered from
        the tiers and only the missing ones are computed, still once per key.

        Args:
            items: ``(key, compute_fn)`` or ``(key, compute_fn, ttl_seconds)``

        Returns:
            Values in the order of ``items``

        Raises:
            Exception: The first compute_fn failure that is not covered by
                error grace
        """
        lookups = []
        for item in items:
            key, compute_fn, *rest = item
            lookups.append(self.get_or_set(key, compute_fn, rest[0] if rest else None))
        return list(await asyncio.gather(*lookups))

    # =========================================================================
    # Health
    # =========================================================================

    async def health_check(self) -> dict[str, bool]:
        """Probe both tiers: {"local": bool, "remote": bool}."""
        return await self._store.health_check()

    # =========================================================================
    # Internals
    # =========================================================================

    def _build_entry(self, key: str, value: Any, ttl_seconds: int | None) -> CacheEntry:
        policy = self.policy_for(KeyCodec.namespace_of(key))
        ttl = policy.ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl}")
        return CacheEntry.create(
            key,
            value,
            ttl_seconds=ttl,
            stale_seconds=policy.stale_while_revalidate_seconds,
            grace_seconds=policy.error_grace_seconds,
            now=self._clock(),
        )

    def _flight(self, key: str, compute_fn: ComputeFn, ttl_seconds: int | None) -> asyncio.Task:
        """Join the populate task for ``key``, starting one if none is running."""
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._populate(key, compute_fn, ttl_seconds), name=f"cache-populate:{key}"
            )
            self._inflight[key] = task
            task.add_done_callback(functools.partial(self._forget_flight, key))
        return task

    def _forget_flight(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        self._superseded.discard(task)

        # Every waiter may have been cancelled; mark the error retrieved
        if not task.cancelled():
            task.exception()

    def _supersede_flights(self, matches: Callable[[str], bool]) -> None:
        """Detach running flights for matched keys so new callers start over."""
        for key in [key for key in self._inflight if matches(key)]:
            task = self._inflight.pop(key)
            self._superseded.add(task)
            log_stage(logger, Stage.CACHE_INVALIDATION, "In-flight populate superseded", level="debug", key=key)

    async def _populate(self, key: str, compute_fn: ComputeFn, ttl_seconds: int | None) -> Any:
        # A flight that finished between our read and joining may have stored it already
        existing = self._store.peek_local(key)
        if existing is not None and existing.is_fresh(self._clock()):
            return existing.value

        value = await invoke_compute(compute_fn)
        if asyncio.current_task() in self._superseded:
            log_stage(
                logger, Stage.CACHE_POPULATION, "Discarding value computed before invalidation", level="debug", key=key
            )
            return value

        entry = self._build_entry(key, value, ttl_seconds)
        self._collapse(await self._store.write(entry), KeyCodec.namespace_of(key), "write", key=key)

        log_stage(logger, Stage.CACHE_POPULATION, "Cache populated", level="debug", key=key)
        return value

    def _schedule_refresh(self, key: str, compute_fn: ComputeFn, ttl_seconds: int | None) -> None:
        """Start a background refresh unless the key is already being computed."""
        if key in self._inflight:
            return

        task = self._flight(key, compute_fn, ttl_seconds)
        self._refresh_tasks.add(task)
        task.add_done_callback(functools.partial(self._on_refresh_done, key))
        log_stage(logger, Stage.BACKGROUND_REFRESH, "Background refresh scheduled", level="debug", key=key)

    def _on_refresh_done(self, key: str, task: asyncio.Task) -> None:
        self._refresh_tasks.discard(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            self._metrics.record_error(KeyCodec.namespace_of(key), ErrorKind.REFRESH)
            log_stage(
                logger,
                Stage.BACKGROUND_REFRESH,
                "Background refresh failed, keeping stale entry",
                level="warning",
                key=key,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    def _collapse(self, result: StoreResult, namespace: str | None, operation: str, **context) -> Any:
        """Log and count a degraded store result, then return its value."""
        if result.error is not None:
            kind = (
                ErrorKind.SERIALIZATION
                if isinstance(result.error, CacheSerializationError)
                else ErrorKind.REMOTE
            )
            if namespace is not None:
                self._metrics.record_error(namespace, kind)
            log_stage(
                logger,
                Stage.REMOTE_TIER,
                "Remote cache tier degraded",
                level="warning",
                operation=operation,
                namespace=namespace,
                error=result.error.to_dict(),
                **context,
            )
        return result.value


def entry_namespace(key_or_pattern: str) -> str:
    """Namespace of a key or a ``prefix*`` pattern."""
    return KeyCodec.namespace_of(key_or_pattern.rstrip("*"))


async def invoke_compute(compute_fn: ComputeFn) -> Any:
    result = compute_fn()
    if inspect.isawaitable(result):
        result = await result
    return result


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
