"""
Exception Module

Structured exception hierarchy for the back-office cache layer.

Module Structure:
-----------------
- **base.py**: BackofficeCacheError base class
- **cache.py**: Storage tier and key/pattern exceptions
- **invalidation.py**: Domain invalidation exceptions

A failing ``compute_fn`` is not wrapped: the caller's own exception
propagates through the facade unchanged.

Usage:
------
```python
from backoffice_cache.core.exceptions import CacheError, InvalidCachePatternError
```
"""

from backoffice_cache.core.exceptions.base import BackofficeCacheError
from backoffice_cache.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    CacheTimeoutError,
    InvalidCachePatternError,
    RemoteUnavailableError,
)
from backoffice_cache.core.exceptions.invalidation import InvalidationPartialFailure

__all__ = [
    "BackofficeCacheError",
    "CacheError",
    "RemoteUnavailableError",
    "CacheConnectionError",
    "CacheTimeoutError",
    "CacheKeyError",
    "CacheSerializationError",
    "InvalidCachePatternError",
    "InvalidationPartialFailure",
]
