"""
Remote (Redis) cache tier.

STAGE-2.2: Remote tier

Every call is bounded by CACHE_REMOTE_TIMEOUT_MS (pattern scans by
CACHE_REMOTE_SCAN_TIMEOUT_MS) and returns a StoreResult: a Redis outage
degrades the cache to local-only, it never fails the caller.

Stored layout:
    {CACHE_KEY_PREFIX}:{cache key} -> orjson envelope
        {"v": value | "b": base64 bytes, "c": created_at, "e": expires_at,
         "s": stale_until, "g": grace_until}
    Redis expiry is set to grace_until, so Redis drops the key exactly when
    the entry stops being useful to any process.
"""

import asyncio
import base64
import binascii
import math
import time
from collections.abc import Awaitable
from typing import Any, TypeVar

import orjson

from backoffice_cache.core.config.constants import (
    ENVELOPE_BYTES,
    ENVELOPE_CREATED_AT,
    ENVELOPE_EXPIRES_AT,
    ENVELOPE_GRACE_UNTIL,
    ENVELOPE_STALE_UNTIL,
    ENVELOPE_VALUE,
    KEY_SEPARATOR,
    WILDCARD,
)
from backoffice_cache.core.exceptions import (
    CacheError,
    CacheSerializationError,
    CacheTimeoutError,
)
from backoffice_cache.core.logging.logger import get_logger
from backoffice_cache.infrastructure.cache.entry import CacheEntry, Clock
from backoffice_cache.infrastructure.cache.key_codec import KeyCodec
from backoffice_cache.infrastructure.cache.redis_client import RedisClient
from backoffice_cache.infrastructure.cache.result import StoreResult

logger = get_logger(__name__)

T = TypeVar("T")


def serialize_entry(entry: CacheEntry) -> bytes:
    """
    Encode an entry as an orjson envelope.

    Raises:
        CacheSerializationError: If the value is not JSON-serializable
    """
    envelope: dict[str, Any] = {
        ENVELOPE_CREATED_AT: entry.created_at,
        ENVELOPE_EXPIRES_AT: entry.expires_at,
        ENVELOPE_STALE_UNTIL: entry.stale_until,
        ENVELOPE_GRACE_UNTIL: entry.grace_until,
    }
    if isinstance(entry.value, (bytes, bytearray, memoryview)):
        envelope[ENVELOPE_BYTES] = base64.b64encode(bytes(entry.value)).decode("ascii")
    else:
        envelope[ENVELOPE_VALUE] = entry.value
    try:
        return orjson.dumps(envelope)
    except TypeError as e:
        raise CacheSerializationError.from_exception(
            e, message=f"Value for {entry.key!r} is not serializable", key=entry.key
        ) from e


def deserialize_entry(key: str, payload: bytes) -> CacheEntry:
    """
    Decode an envelope written by serialize_entry.

    Raises:
        CacheSerializationError: If the payload is corrupt or foreign
    """
    try:
        envelope = orjson.loads(payload)
        if ENVELOPE_BYTES in envelope:
            value = base64.b64decode(envelope[ENVELOPE_BYTES], validate=True)
        else:
            value = envelope[ENVELOPE_VALUE]
        return CacheEntry(
            key=key,
            value=value,
            created_at=float(envelope[ENVELOPE_CREATED_AT]),
            expires_at=float(envelope[ENVELOPE_EXPIRES_AT]),
            stale_until=float(envelope[ENVELOPE_STALE_UNTIL]),
            grace_until=float(envelope[ENVELOPE_GRACE_UNTIL]),
        )
    except (orjson.JSONDecodeError, KeyError, TypeError, ValueError, binascii.Error) as e:
        raise CacheSerializationError.from_exception(
            e, message=f"Corrupt remote entry for {key!r}", key=key
        ) from e


class RemoteTier:
    """
    Shared Redis storage of CacheEntry objects.

    Responsibility: Prefixing, envelope encoding, timeouts, and converting
    failures into StoreResult errors.

    Why a key prefix?
    - Several applications may share one Redis database
    - clear() and pattern scans only touch this application's keys
    """

    def __init__(
        self,
        client: RedisClient,
        key_prefix: str,
        timeout_ms: int,
        scan_timeout_ms: int,
        clock: Clock = time.time,
    ):
        self._client = client
        self._prefix = key_prefix
        self._timeout = timeout_ms / 1000
        self._scan_timeout = scan_timeout_ms / 1000
        self._clock = clock

    @property
    def client(self) -> RedisClient:
        return self._client

    def remote_key(self, key: str) -> str:
        return f"{self._prefix}{KEY_SEPARATOR}{key}"

    async def _call(self, awaitable: Awaitable[T], timeout: float, operation: str, **details) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise CacheTimeoutError(
                f"Remote {operation} exceeded {int(timeout * 1000)}ms",
                details={"operation": operation, "timeout_ms": int(timeout * 1000), **details},
            ) from e
        except CacheError as e:
            raise e.with_context(operation=operation)

    async def connect(self) -> bool:
        return await self._client.connect()

    async def disconnect(self) -> None:
        await self._client.disconnect()

    async def get(self, key: str) -> StoreResult[CacheEntry | None]:
        """Read an entry. Corrupt payloads and failures read as a miss."""
        try:
            payload = await self._call(self._client.get(self.remote_key(key)), self._timeout, "get", key=key)
            if payload is None:
                return StoreResult(None)
            return StoreResult(deserialize_entry(key, payload))
        except CacheError as e:
            return StoreResult(None, e)

    async def set(self, entry: CacheEntry) -> StoreResult[bool]:
        """
        Write an entry with Redis expiry at grace_until.

        Serialization failures skip the write and are reported like outages.
        """
        try:
            payload = serialize_entry(entry)
            ttl = max(1, math.ceil(entry.grace_until - self._clock()))
            await self._call(
                self._client.set(self.remote_key(entry.key), payload, ex=ttl),
                self._timeout,
                "set",
                key=entry.key,
            )
            return StoreResult(True)
        except CacheError as e:
            return StoreResult(False, e)

    async def delete(self, key: str) -> StoreResult[bool]:
        try:
            removed = await self._call(self._client.delete(self.remote_key(key)), self._timeout, "delete", key=key)
            return StoreResult(removed > 0)
        except CacheError as e:
            return StoreResult(False, e)

    async def remove_matching(self, prefix: str, is_prefix: bool) -> StoreResult[int]:
        """
        Remove keys covered by a parsed pattern.

        A prefix scan uses SCAN MATCH with the literal prefix glob-escaped;
        a prefix ending in the separator also deletes the bare root key.
        """
        try:
            if not is_prefix:
                removed = await self._call(
                    self._client.delete(self.remote_key(prefix)), self._timeout, "delete", key=prefix
                )
                return StoreResult(int(removed))

            match = KeyCodec.escape_glob(self.remote_key(prefix)) + WILDCARD
            removed = await self._call(
                self._client.scan_delete(match), self._scan_timeout, "scan_delete", pattern=prefix + WILDCARD
            )
            if prefix.endswith(KEY_SEPARATOR):
                root = prefix[: -len(KEY_SEPARATOR)]
                removed += await self._call(
                    self._client.delete(self.remote_key(root)), self._timeout, "delete", key=root
                )
            return StoreResult(int(removed))
        except CacheError as e:
            return StoreResult(0, e)

    async def clear(self) -> StoreResult[int]:
        """Remove every key under this application's prefix."""
        match = KeyCodec.escape_glob(self.remote_key("")) + WILDCARD
        try:
            removed = await self._call(self._client.scan_delete(match), self._scan_timeout, "clear")
            return StoreResult(int(removed))
        except CacheError as e:
            return StoreResult(0, e)

    async def ping(self) -> bool:
        """True only if Redis answers PING within the timeout."""
        try:
            return await self._call(self._client.ping(), self._timeout, "ping")
        except CacheError as e:
            logger.debug("Remote ping failed", error=str(e))
            return False
