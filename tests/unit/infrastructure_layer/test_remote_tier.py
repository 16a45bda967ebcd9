"""
Unit Tests for the Redis client and RemoteTier

Tests envelope encoding, Redis expiry, timeouts, outage handling and
prefix-scoped scans against the in-memory Redis double.
"""

import time

import orjson
import pytest
from redis.exceptions import ResponseError

from backoffice_cache.core.exceptions import (
    CacheConnectionError,
    CacheKeyError,
    CacheSerializationError,
    CacheTimeoutError,
)
from backoffice_cache.infrastructure.cache import CacheEntry
from backoffice_cache.infrastructure.cache.redis_client import RedisClient
from backoffice_cache.infrastructure.cache.remote_tier import (
    RemoteTier,
    deserialize_entry,
    serialize_entry,
)

PREFIX = "backoffice:cache"


@pytest.fixture
def redis_client(remote_settings, fake_redis):
    return RedisClient(remote_settings, client=fake_redis)


@pytest.fixture
def tier(redis_client, fake_clock):
    return RemoteTier(redis_client, key_prefix=PREFIX, timeout_ms=50, scan_timeout_ms=200, clock=fake_clock)


def _entry(key, value, now, ttl=60, stale=30, grace=0):
    return CacheEntry.create(key, value, ttl_seconds=ttl, stale_seconds=stale, grace_seconds=grace, now=now)


@pytest.mark.unit
class TestEnvelope:
    """Test entry (de)serialization."""

    def test_json_value_keeps_timeline(self):
        """Test a JSON value and its timestamps survive encoding."""
        entry = _entry("invoices:page:!i1", {"items": [1, 2], "total": 2}, now=100.0)

        decoded = deserialize_entry(entry.key, serialize_entry(entry))

        assert decoded == entry

    def test_bytes_value(self):
        """Test raw bytes are stored base64 and come back as bytes."""
        entry = _entry("exports:id:!i7", b"\x00\xffcsv", now=100.0)

        payload = serialize_entry(entry)
        decoded = deserialize_entry(entry.key, payload)

        assert "b" in orjson.loads(payload)
        assert decoded.value == b"\x00\xffcsv"

    def test_unserializable_value_raises(self):
        """Test a value orjson cannot encode raises CacheSerializationError."""
        with pytest.raises(CacheSerializationError):
            serialize_entry(_entry("k", object(), now=0.0))

    @pytest.mark.parametrize("payload", [b"not json", b"[1, 2]", b'{"v": 1}', b'{"b": "!!", "c": 1, "e": 1, "s": 1, "g": 1}'])
    def test_corrupt_payload_raises(self, payload):
        """Test foreign or corrupt payloads raise CacheSerializationError."""
        with pytest.raises(CacheSerializationError):
            deserialize_entry("k", payload)


@pytest.mark.unit
class TestRedisClient:
    """Test the layered Redis client."""

    async def test_connect_pings(self, redis_client, fake_redis):
        """Test connect succeeds when Redis answers."""
        assert await redis_client.connect() is True
        assert redis_client.is_connected()
        assert fake_redis.calls[0][0] == "ping"

    async def test_connect_with_redis_down_does_not_raise(self, redis_client, fake_redis):
        """Test startup continues when Redis is down."""
        fake_redis.down = True

        assert await redis_client.connect() is False
        assert not redis_client.is_connected()

    async def test_connection_error_mapped(self, redis_client, fake_redis):
        """Test redis ConnectionError becomes CacheConnectionError."""
        fake_redis.down = True

        with pytest.raises(CacheConnectionError):
            await redis_client.get("k")

    async def test_other_redis_error_mapped(self, redis_client, fake_redis):
        """Test other RedisError subclasses become CacheKeyError."""
        fake_redis.fail_with = ResponseError("WRONGTYPE")

        with pytest.raises(CacheKeyError):
            await redis_client.set("k", b"v")

    async def test_uninitialized_client(self, remote_settings):
        """Test commands before connect fail with CacheConnectionError."""
        client = RedisClient(remote_settings)

        with pytest.raises(CacheConnectionError):
            await client.ping()

    async def test_scan_delete_batches(self, redis_client, fake_redis):
        """Test scan_delete removes matching keys in batches."""
        for i in range(5):
            fake_redis.data[f"p:k{i}".encode()] = b"x"
        fake_redis.data[b"other"] = b"x"

        removed = await redis_client.scan_delete("p:*", batch_size=2)

        assert removed == 5
        assert fake_redis.keys_str() == ["other"]
        assert sum(1 for name, _ in fake_redis.calls if name == "delete") == 3

    async def test_health_check(self, redis_client, fake_redis):
        """Test health check reports ping latency, or the error when down."""
        healthy = await redis_client.health_check()
        assert healthy["status"] == "healthy"
        assert healthy["ping_latency_ms"] is not None

        fake_redis.down = True
        unhealthy = await redis_client.health_check()
        assert unhealthy["status"] == "unhealthy"
        assert "error" in unhealthy

    async def test_health_check_bounded_by_timeout(self, redis_client, fake_redis):
        """Test a hanging ping is reported unhealthy after CACHE_REMOTE_TIMEOUT_MS."""
        fake_redis.delay = 2.0

        start = time.perf_counter()
        health = await redis_client.health_check()

        assert time.perf_counter() - start < 1.0
        assert health["status"] == "unhealthy"
        assert health["error"] == "Ping exceeded 50ms"
        assert health["ping_latency_ms"] is None

    async def test_disconnect_closes_client(self, redis_client, fake_redis):
        """Test disconnect closes the underlying client."""
        await redis_client.connect()
        await redis_client.disconnect()

        assert fake_redis.closed
        assert not redis_client.is_connected()


@pytest.mark.unit
class TestRemoteTier:
    """Test the Redis-backed tier."""

    async def test_set_then_get(self, tier, fake_redis, fake_clock):
        """Test an entry is stored under the prefix and read back."""
        entry = _entry("invoices:page:!i1", [1, 2, 3], now=fake_clock.now)

        assert (await tier.set(entry)).value is True
        result = await tier.get("invoices:page:!i1")

        assert fake_redis.keys_str() == [f"{PREFIX}:invoices:page:!i1"]
        assert result.error is None
        assert result.value == entry

    async def test_redis_expiry_is_grace_until(self, tier, fake_redis, fake_clock):
        """Test Redis expiry covers the fresh, stale and grace windows."""
        entry = _entry("reports", 1, now=fake_clock.now, ttl=60, stale=30, grace=15)

        await tier.set(entry)

        assert fake_redis.expirations[f"{PREFIX}:reports".encode()] == 105

    async def test_miss(self, tier):
        """Test an absent key is a clean miss."""
        result = await tier.get("nope")
        assert result.value is None
        assert not result.degraded

    async def test_outage_degrades(self, tier, fake_redis, fake_clock):
        """Test every operation returns an error result instead of raising."""
        fake_redis.down = True

        get = await tier.get("k")
        put = await tier.set(_entry("k", 1, now=fake_clock.now))
        removed = await tier.remove_matching("k", False)

        assert get.value is None and isinstance(get.error, CacheConnectionError)
        assert put.value is False and put.degraded
        assert removed.value == 0 and removed.degraded
        assert await tier.ping() is False

    async def test_outage_error_names_the_operation(self, tier, fake_redis):
        """Test client errors carry the tier operation that failed."""
        fake_redis.down = True

        result = await tier.get("k")

        assert result.error.details["operation"] == "get"
        assert result.error.details["command"] == "GET"

    async def test_slow_redis_times_out(self, tier, fake_redis):
        """Test a slow call is abandoned after the configured timeout."""
        fake_redis.delay = 1.0

        result = await tier.get("k")

        assert result.value is None
        assert isinstance(result.error, CacheTimeoutError)

    async def test_corrupt_payload_reads_as_miss(self, tier, fake_redis):
        """Test a corrupt payload is a miss carrying a serialization error."""
        fake_redis.data[f"{PREFIX}:k".encode()] = b"garbage"

        result = await tier.get("k")

        assert result.value is None
        assert isinstance(result.error, CacheSerializationError)

    async def test_unserializable_value_skips_write(self, tier, fake_redis, fake_clock):
        """Test serialization failures do not reach Redis."""
        result = await tier.set(_entry("k", object(), now=fake_clock.now))

        assert isinstance(result.error, CacheSerializationError)
        assert fake_redis.data == {}

    async def test_remove_matching_prefix(self, tier, fake_redis, fake_clock):
        """Test prefix removal covers the root key and nothing else."""
        for key in ("invoices", "invoices:page:!i1", "invoices:page:!i2", "invoice-statistics"):
            await tier.set(_entry(key, 1, now=fake_clock.now))
        fake_redis.data[b"other-app:invoices:x"] = b"x"

        result = await tier.remove_matching("invoices:", True)

        assert result.value == 3
        assert fake_redis.keys_str() == [f"{PREFIX}:invoice-statistics", "other-app:invoices:x"]

    async def test_prefix_with_glob_characters_is_literal(self, tier, fake_redis, fake_clock):
        """Test glob metacharacters in a prefix are matched literally."""
        await tier.set(_entry("a?b:1", 1, now=fake_clock.now))
        await tier.set(_entry("axb:1", 1, now=fake_clock.now))

        result = await tier.remove_matching("a?b:", True)

        assert result.value == 1
        assert fake_redis.keys_str() == [f"{PREFIX}:axb:1"]

    async def test_clear_only_touches_prefix(self, tier, fake_redis, fake_clock):
        """Test clear leaves keys of other applications alone."""
        await tier.set(_entry("a", 1, now=fake_clock.now))
        await tier.set(_entry("b:c", 1, now=fake_clock.now))
        fake_redis.data[b"sessions:abc"] = b"x"

        result = await tier.clear()

        assert result.value == 2
        assert fake_redis.keys_str() == ["sessions:abc"]
