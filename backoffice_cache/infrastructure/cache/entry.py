"""
Cache Entry

A stored value with its freshness timeline:

    created_at ──ttl──> expires_at ──stale window──> stale_until ──grace──> grace_until
    |<----- fresh ----->|<------- stale (served) ---->|<-- retained -->|

Only the facade creates entries. Timestamps are epoch seconds so that entries
read back from Redis by another process keep their meaning.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    created_at: float
    expires_at: float
    stale_until: float
    grace_until: float

    @classmethod
    def create(
        cls,
        key: str,
        value: Any,
        ttl_seconds: float,
        stale_seconds: float = 0,
        grace_seconds: float = 0,
        now: float | None = None,
    ) -> "CacheEntry":
        """Build an entry whose timeline starts at ``now``."""
        created_at = time.time() if now is None else now
        expires_at = created_at + ttl_seconds
        stale_until = expires_at + stale_seconds
        return cls(
            key=key,
            value=value,
            created_at=created_at,
            expires_at=expires_at,
            stale_until=stale_until,
            grace_until=stale_until + grace_seconds,
        )

    def is_fresh(self, now: float) -> bool:
        return now <= self.expires_at

    def is_servable(self, now: float) -> bool:
        """Fresh or within the stale-while-revalidate window."""
        return now <= self.stale_until

    def within_grace(self, now: float) -> bool:
        """Still retained; usable as a fallback when recomputation fails."""
        return now <= self.grace_until
