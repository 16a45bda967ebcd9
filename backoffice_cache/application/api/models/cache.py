"""
Cache Admin API Models
======================

Request and response models for the cache health and admin endpoints.

Defining them with Pydantic gives:
1. Validation of incoming invalidation requests
2. OpenAPI documentation of every response shape
"""

from typing import Any

from pydantic import BaseModel, Field

# ============================================================================
# HEALTH
# ============================================================================


class HealthResponse(BaseModel):
    """Quick health check response."""

    status: str  # "healthy", "degraded", "unhealthy"
    timestamp: str
    version: str | None = None
    components: dict[str, str] | None = None


class CacheHealthResponse(BaseModel):
    """
    Tier probe result.

    ``remote`` is False both when Redis is down and when it is not
    configured; ``remote_configured`` tells the two apart.
    """

    status: str
    local: bool
    remote: bool
    remote_configured: bool


# ============================================================================
# STATISTICS
# ============================================================================


class NamespaceStats(BaseModel):
    """Cache statistics of one namespace."""

    hits: int = Field(..., ge=0, description="Fresh and stale hits")
    misses: int = Field(..., ge=0, description="Lookups that had to compute")
    stale_hits: int = Field(..., ge=0, description="Hits served from the stale window")
    errors: int = Field(..., ge=0, description="Errors of any kind")
    errors_by_kind: dict[str, int] = Field(default_factory=dict)
    hit_rate: float = Field(..., ge=0, le=1, description="hits / (hits + misses)")
    avg_latency: float = Field(..., ge=0, description="Mean lookup latency in milliseconds")
    p95: float = Field(..., ge=0, description="95th percentile latency in milliseconds")
    p99: float = Field(..., ge=0, description="99th percentile latency in milliseconds")
    samples: int = Field(..., ge=0, description="Latency samples in the window")


class CacheStatsResponse(BaseModel):
    namespaces: dict[str, NamespaceStats]


# ============================================================================
# INVALIDATION
# ============================================================================


class InvalidatePatternRequest(BaseModel):
    """
    Pattern invalidation request.

    Only ``prefix*`` or an exact key is accepted.
    """

    pattern: str = Field(..., min_length=1, examples=["invoices:*"])


class InvalidatePatternResponse(BaseModel):
    pattern: str
    removed: int = Field(..., ge=0)


class EntityChangedRequest(BaseModel):
    """Scope values for the invalidation templates, e.g. {"userId": 42}."""

    scope: dict[str, Any] | None = None


class InvalidationReportResponse(BaseModel):
    entity_type: str
    patterns: list[str]
    removed: int = Field(..., ge=0)
    failures: list[dict[str, Any]] = Field(default_factory=list)


class ClearCacheResponse(BaseModel):
    removed: int = Field(..., ge=0)
