"""
Redis Client with Connection Pooling

Architecture:
    RedisClient (Public API)
        ├── ConnectionManager (Connection lifecycle)
        ├── OperationExecutor (Command execution with error mapping)
        └── HealthMonitor (Ping latency and pool metrics)

The client stores raw bytes (decode_responses=False); serialization of cache
entries belongs to the RemoteTier. Timeouts per call are also applied there;
only the health check bounds its own ping.
"""

import asyncio
import time
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from backoffice_cache.core.config.constants import REMOTE_SCAN_BATCH_SIZE
from backoffice_cache.core.exceptions import CacheConnectionError, CacheKeyError
from backoffice_cache.core.logging.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Handles connection lifecycle and pooling
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Responsibility: Connection establishment, pooling, and cleanup.

    Why Connection Pooling?
    - Reuse connections instead of creating new ones per command
    - Max connections: Burst capacity (prevents overload)
    - Health checks: Early failure detection

    A failed initial ping does not abort startup: the cache must run with
    Redis down. The client is kept and redis-py reconnects on the next
    command, so the remote tier recovers on its own once Redis is back.
    """

    def __init__(self, settings, client: redis.Redis | None = None):
        """
        Initialize connection manager.

        Args:
            settings: Application settings
            client: Pre-built client (tests inject an in-memory double)
        """
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = client
        self._is_connected = False

    async def connect(self) -> bool:
        """
        Create the pool and verify the connection with a ping.

        STAGE-R.1: Connection establishment

        Returns:
            True if Redis answered the ping
        """
        redis_settings = self._settings.redis

        if self._client is None:
            self._pool = ConnectionPool(
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                db=redis_settings.REDIS_DB,
                password=redis_settings.REDIS_PASSWORD,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
                health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
                decode_responses=False,
            )
            self._client = redis.Redis(connection_pool=self._pool)

        try:
            await self._client.ping()
        except (ConnectionError, TimeoutError, OSError) as e:
            self._is_connected = False
            logger.warning(
                "Redis unavailable at startup, continuing with local tier only",
                stage="R.1",
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                error=str(e),
            )
            return False

        self._is_connected = True
        logger.info(
            "Redis connected successfully",
            stage="R.1",
            host=redis_settings.REDIS_HOST,
            port=redis_settings.REDIS_PORT,
            max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
        )
        return True

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-R.3: Connection cleanup
        """
        if self._client is not None:
            await self._client.aclose()

        if self._pool is not None:
            await self._pool.disconnect()

        self._is_connected = False
        logger.info("Redis disconnected", stage="R.3")

    def get_client(self) -> redis.Redis | None:
        """Get the Redis client instance."""
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        """Get the connection pool instance."""
        return self._pool

    def is_connected(self) -> bool:
        """Whether the last connect() ping succeeded."""
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTION
# Executes Redis commands and maps errors to cache exceptions
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with error mapping.

    Responsibility: Execute commands, translate redis-py errors.

    Error Mapping:
    - ConnectionError / TimeoutError -> CacheConnectionError
    - Any other RedisError -> CacheKeyError
    """

    def __init__(self, connection_manager: ConnectionManager):
        self._conn_mgr = connection_manager

    def _client(self) -> redis.Redis:
        client = self._conn_mgr.get_client()
        if client is None:
            raise CacheConnectionError("Redis client not initialized")
        return client

    @staticmethod
    def _map_error(exc: RedisError, command: str, **details) -> Exception:
        if isinstance(exc, (ConnectionError, TimeoutError)):
            return CacheConnectionError.from_exception(
                exc, message=f"Redis {command} failed: {exc}", command=command, **details
            )
        return CacheKeyError.from_exception(
            exc, message=f"Redis {command} failed: {exc}", command=command, **details
        )

    async def get(self, key: str) -> bytes | None:
        try:
            return await self._client().get(key)
        except RedisError as e:
            raise self._map_error(e, "GET", key=key) from e

    async def set(self, key: str, value: bytes, ex: int | None = None) -> bool:
        """
        Set a value with an optional expiry in seconds.

        Returns:
            True if set successfully
        """
        try:
            return bool(await self._client().set(key, value, ex=ex))
        except RedisError as e:
            raise self._map_error(e, "SET", key=key) from e

    async def delete(self, *keys: str) -> int:
        """Delete keys. Returns the number of keys removed."""
        if not keys:
            return 0
        try:
            return int(await self._client().delete(*keys))
        except RedisError as e:
            raise self._map_error(e, "DEL", keys=list(keys)) from e

    async def scan_delete(self, match: str, batch_size: int = REMOTE_SCAN_BATCH_SIZE) -> int:
        """
        Delete every key matching a glob, using SCAN and batched DEL.

        KEYS is never used: it blocks the server for the whole keyspace.

        Returns:
            Number of keys removed
        """
        client = self._client()
        deleted = 0
        batch: list[bytes] = []
        try:
            async for key in client.scan_iter(match=match, count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    deleted += int(await client.delete(*batch))
                    batch = []
            if batch:
                deleted += int(await client.delete(*batch))
        except RedisError as e:
            raise self._map_error(e, "SCAN", match=match, deleted=deleted) from e
        return deleted

    async def ping(self) -> bool:
        try:
            return bool(await self._client().ping())
        except RedisError as e:
            raise self._map_error(e, "PING") from e


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Monitors Redis health and connection pool metrics.

    Metrics Tracked:
    - Ping latency (ping bounded by CACHE_REMOTE_TIMEOUT_MS)
    - Pool size and utilization
    - Pool exhaustion warnings (>80% utilized)
    """

    def __init__(self, connection_manager: ConnectionManager, settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on Redis connection.

        STAGE-H.2: Redis health check

        Returns:
            Dict with health status and metrics
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "pool_size": 0,
            "pool_utilization_pct": 0,
            "pool_warning": False,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if client is None:
            health["status"] = "unhealthy"
            health["error"] = "Client not initialized"
            return health

        timeout = self._settings.cache.CACHE_REMOTE_TIMEOUT_MS / 1000
        try:
            start = time.perf_counter()
            await asyncio.wait_for(client.ping(), timeout=timeout)
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except asyncio.TimeoutError:
            health["status"] = "unhealthy"
            health["error"] = f"Ping exceeded {self._settings.cache.CACHE_REMOTE_TIMEOUT_MS}ms"
            return health
        except (RedisError, OSError) as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)
            return health

        pool = self._conn_mgr.get_pool()
        if pool is not None:
            health["pool_size"] = pool.max_connections
            in_use = len(getattr(pool, "_in_use_connections", ()))
            utilization = 100.0 * in_use / pool.max_connections
            health["pool_utilization_pct"] = round(utilization, 1)
            if utilization > 80:
                health["pool_warning"] = True
                logger.warning(
                    "Redis pool utilization high",
                    pool_utilization=utilization,
                    max_connections=pool.max_connections,
                )

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async Redis client with connection pooling and health checks.

    Usage:
        client = RedisClient(settings)
        await client.connect()

        await client.set("backoffice:cache:invoices", b"...", ex=180)
        value = await client.get("backoffice:cache:invoices")

        await client.disconnect()

    Unlike a process-wide singleton, each CacheFacade owns its client; the
    bootstrap code decides when it is connected and closed.
    """

    def __init__(self, settings, client: redis.Redis | None = None):
        """
        Initialize Redis client.

        STAGE-R.0: Client initialization

        Args:
            settings: Application settings
            client: Optional pre-built redis client
        """
        self._settings = settings
        self._conn_mgr = ConnectionManager(settings, client=client)
        self._executor = OperationExecutor(self._conn_mgr)
        self._health_monitor = HealthMonitor(self._conn_mgr, settings)

    async def connect(self) -> bool:
        """Connect the pool. Returns False (without raising) if Redis is down."""
        return await self._conn_mgr.connect()

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()

    def is_connected(self) -> bool:
        return self._conn_mgr.is_connected()

    async def get(self, key: str) -> bytes | None:
        return await self._executor.get(key)

    async def set(self, key: str, value: bytes, ex: int | None = None) -> bool:
        return await self._executor.set(key, value, ex=ex)

    async def delete(self, *keys: str) -> int:
        return await self._executor.delete(*keys)

    async def scan_delete(self, match: str, batch_size: int = REMOTE_SCAN_BATCH_SIZE) -> int:
        return await self._executor.scan_delete(match, batch_size=batch_size)

    async def ping(self) -> bool:
        return await self._executor.ping()

    async def health_check(self) -> dict[str, Any]:
        """Perform health check on Redis connection."""
        return await self._health_monitor.health_check()
