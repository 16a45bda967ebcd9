"""
Local (in-process) cache tier.

STAGE-2.1: Local LRU tier

Architecture:
    ValueStore
        ├── LocalTier   <- this module (always present)
        └── RemoteTier  (optional, shared via Redis)
"""

import asyncio
import time
from collections import OrderedDict

from backoffice_cache.core.logging.logger import get_logger
from backoffice_cache.infrastructure.cache.entry import CacheEntry, Clock
from backoffice_cache.infrastructure.cache.key_codec import KeyCodec

logger = get_logger(__name__)


class LocalTier:
    """
    In-memory LRU storage of CacheEntry objects.

    Responsibility: Fast in-process storage with LRU eviction.

    This is a per-process tier, not shared across workers.
    For sharing between processes, the RemoteTier (Redis) is used.

    Implementation Details:
    - Uses OrderedDict for O(1) access and LRU ordering
    - Guarded by asyncio.Lock
    - Evicts the least recently used entry when at capacity
    - Entries past grace_until are dropped lazily when read

    Why lazy expiry?
    - No background sweeper task to own and cancel
    - Capacity bound already limits memory held by dead entries
    """

    def __init__(self, max_size: int, clock: Clock = time.time):
        """
        Initialize LRU tier.

        Args:
            max_size: Maximum number of entries to store
            clock: Source of "now" in epoch seconds
        """
        self._max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> CacheEntry | None:
        """
        Get an entry. Returns None if absent or past its grace window.

        LRU Update: Moves accessed entry to end (most recently used)
        """
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.within_grace(self._clock()):
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry

    async def set(self, entry: CacheEntry) -> None:
        """
        Store an entry, replacing any previous one. Evicts LRU entries past capacity.
        """
        async with self._lock:
            if entry.key in self._entries:
                self._entries.move_to_end(entry.key)
            self._entries[entry.key] = entry

            while len(self._entries) > self._max_size:
                evicted_key, _ = self._entries.popitem(last=False)
                logger.debug("Local tier eviction", key=evicted_key)

    async def delete(self, key: str) -> bool:
        """Delete an entry. Returns True if it was present."""
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def remove_matching(self, prefix: str, is_prefix: bool) -> int:
        """
        Remove every entry matched by a parsed invalidation pattern.

        Linear scan over the keys; the tier is bounded so this stays cheap.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            doomed = [k for k in self._entries if KeyCodec.matches(k, prefix, is_prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    async def clear(self) -> int:
        """Clear all entries. Returns the number removed."""
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def probe(self) -> bool:
        """Health probe: the tier is usable unless allocation fails."""
        try:
            self._entries.get("__probe__")
            _ = [None] * 16
        except MemoryError:
            return False
        return True

    def peek(self, key: str) -> CacheEntry | None:
        """Entry as stored, without LRU update or expiry."""
        return self._entries.get(key)

    def get_size(self) -> int:
        """Get current number of entries."""
        return len(self._entries)

    def get_max_size(self) -> int:
        """Get maximum capacity."""
        return self._max_size

    def get_keys(self) -> list[str]:
        """All keys in LRU order (oldest first)."""
        return list(self._entries.keys())
