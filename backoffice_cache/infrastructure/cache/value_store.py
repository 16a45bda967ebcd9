"""
ValueStore: coordinates the local and remote tiers.

STAGE-2: Tiered storage

Algorithm:
    READ:   local -> remote (write remote hit through to local) -> miss
    WRITE:  local always, remote best-effort
    REMOVE: both tiers; remote failure reported, local removal kept

The store owns no policy. It never decides freshness and never writes on its
own except the write-through of a remote hit. Remote failures come back as
StoreResult errors for the facade to log and count.
"""

from typing import Any

from backoffice_cache.core.logging.logger import get_logger
from backoffice_cache.infrastructure.cache.entry import CacheEntry
from backoffice_cache.infrastructure.cache.key_codec import KeyCodec
from backoffice_cache.infrastructure.cache.local_tier import LocalTier
from backoffice_cache.infrastructure.cache.remote_tier import RemoteTier
from backoffice_cache.infrastructure.cache.result import StoreResult

logger = get_logger(__name__)


class ValueStore:
    """
    Two-tier entry storage.

    Responsibility: Implements local→remote fallback and fan-out of writes
    and removals to both tiers.

    Why write remote hits through to local?
    - The local tier is the fastest path
    - The next read of the same key on this process skips the network
    """

    def __init__(self, local: LocalTier, remote: RemoteTier | None = None):
        """
        Args:
            local: In-process tier (always present)
            remote: Redis tier, or None for a local-only deployment
        """
        self._local = local
        self._remote = remote

    @property
    def local(self) -> LocalTier:
        return self._local

    @property
    def remote(self) -> RemoteTier | None:
        return self._remote

    @property
    def remote_configured(self) -> bool:
        return self._remote is not None

    async def read(self, key: str) -> StoreResult[CacheEntry | None]:
        """
        Read an entry, local tier first.

        Returns:
            The entry (possibly stale; freshness is the caller's concern) or
            None, with the remote error if the remote tier failed
        """
        entry = await self._local.get(key)
        if entry is not None or self._remote is None:
            return StoreResult(entry)

        result = await self._remote.get(key)
        if result.value is not None:
            await self._local.set(result.value)
            logger.debug("Remote hit written through to local tier", stage="2.2", key=key)
        return result

    async def write(self, entry: CacheEntry) -> StoreResult[None]:
        """Write to both tiers. The local write always happens."""
        await self._local.set(entry)
        if self._remote is None:
            return StoreResult(None)
        result = await self._remote.set(entry)
        return StoreResult(None, result.error)

    async def remove(self, key: str) -> StoreResult[bool]:
        """
        Remove a key from both tiers. A missing key is not an error.

        Returns:
            True if either tier held the key
        """
        removed = await self._local.delete(key)
        if self._remote is None:
            return StoreResult(removed)
        result = await self._remote.delete(key)
        return StoreResult(removed or result.value, result.error)

    async def remove_by_pattern(self, pattern: str) -> StoreResult[int]:
        """
        Remove every key covered by ``prefix*`` or an exact key.

        Count is the larger of the local and remote removal counts: the
        remote tier holds the same keys as the local one plus those written
        by other processes, so summing would double count.

        Raises:
            InvalidCachePatternError: For unsupported wildcard placement
        """
        prefix, is_prefix = KeyCodec.parse_pattern(pattern)

        local_removed = await self._local.remove_matching(prefix, is_prefix)
        if self._remote is None:
            return StoreResult(local_removed)

        result = await self._remote.remove_matching(prefix, is_prefix)
        return StoreResult(max(local_removed, result.value), result.error)

    async def clear(self, include_remote: bool = True) -> StoreResult[int]:
        """
        Clear the local tier and, when asked, this application's remote keys.
        """
        local_removed = await self._local.clear()
        if self._remote is None or not include_remote:
            return StoreResult(local_removed)

        result = await self._remote.clear()
        return StoreResult(max(local_removed, result.value), result.error)

    async def health_check(self) -> dict[str, Any]:
        """
        Probe both tiers.

        Returns:
            {"local": bool, "remote": bool}; remote is False when not configured
        """
        local_ok = self._local.probe()
        remote_ok = False
        if self._remote is not None:
            remote_ok = await self._remote.ping()
        return {"local": local_ok, "remote": remote_ok}

    def peek_local(self, key: str) -> CacheEntry | None:
        """Local entry as stored, without LRU update or expiry."""
        return self._local.peek(key)

    async def connect(self) -> None:
        if self._remote is not None:
            await self._remote.connect()

    async def close(self) -> None:
        if self._remote is not None:
            await self._remote.disconnect()
