"""
Cache Module

Provides the two-tier (in-process + Redis) read-through cache and
domain-driven invalidation.
"""

from .cache_facade import CacheFacade, build_value_store
from .entry import CacheEntry
from .invalidation import DEFAULT_RULES, DomainInvalidator, InvalidationReport
from .key_codec import KeyCodec
from .result import StoreResult
from .typed import NamespacedCache

__all__ = [
    "CacheEntry",
    "CacheFacade",
    "DEFAULT_RULES",
    "DomainInvalidator",
    "InvalidationReport",
    "KeyCodec",
    "NamespacedCache",
    "StoreResult",
    "build_value_store",
]
