"""
API Models Package
==================

Pydantic models for API request/response validation.

ORGANIZATION:
-------------
- cache.py: Health, statistics and invalidation models
"""

from backoffice_cache.application.api.models.cache import (
    CacheHealthResponse,
    CacheStatsResponse,
    ClearCacheResponse,
    EntityChangedRequest,
    HealthResponse,
    InvalidatePatternRequest,
    InvalidatePatternResponse,
    InvalidationReportResponse,
    NamespaceStats,
)

__all__ = [
    "CacheHealthResponse",
    "CacheStatsResponse",
    "ClearCacheResponse",
    "EntityChangedRequest",
    "HealthResponse",
    "InvalidatePatternRequest",
    "InvalidatePatternResponse",
    "InvalidationReportResponse",
    "NamespaceStats",
]
