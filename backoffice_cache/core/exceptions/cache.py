"""
Cache-Related Exceptions

Errors raised by the storage tiers and the key/pattern layer. Remote errors
never reach callers of the cache facade; they travel inside StoreResult and
are logged there.
"""

from backoffice_cache.core.exceptions.base import BackofficeCacheError


class CacheError(BackofficeCacheError):
    """Base exception for cache-related errors."""
    pass


class RemoteUnavailableError(CacheError):
    """
    The remote (Redis) tier could not serve a request.

    Recovered locally: the operation degrades to the local tier.
    """
    pass


class CacheConnectionError(RemoteUnavailableError):
    """
    Raised when unable to connect to Redis.

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    """
    pass


class CacheTimeoutError(RemoteUnavailableError):
    """Raised when a remote call exceeds CACHE_REMOTE_TIMEOUT_MS."""
    pass


class CacheKeyError(CacheError):
    """
    Raised when a Redis command on a key fails.

    Common causes:
    - Wrong value type stored under the key
    - Memory limit exceeded on the server
    """
    pass


class CacheSerializationError(CacheError):
    """A value could not be encoded for, or decoded from, the remote tier."""
    pass


class InvalidCachePatternError(CacheError, ValueError):
    """
    Raised for an invalidation pattern other than ``prefix*`` or an exact key.

    Only a single trailing wildcard is supported.
    """
    pass
