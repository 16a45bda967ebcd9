"""
Configuration Module

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Separators, type tags, stage identifiers and enums

Usage:
------
```python
from backoffice_cache.core.config import get_settings

settings = get_settings()
policy = settings.cache.policy_for("invoice-statistics")
```

Environment Variables:
---------------------
```bash
REDIS_ENABLED=true
REDIS_HOST=localhost
CACHE_REMOTE_TIMEOUT_MS=250
CACHE_NAMESPACES='{"invoices": {"ttl_seconds": 60, "stale_while_revalidate_seconds": 30}}'
```
"""

from .settings import (
    DEFAULT_NAMESPACE_POLICIES,
    NamespacePolicy,
    Settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "DEFAULT_NAMESPACE_POLICIES",
    "NamespacePolicy",
    "Settings",
    "get_settings",
    "reload_settings",
]
