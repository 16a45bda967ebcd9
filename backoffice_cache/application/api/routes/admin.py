"""
Cache Admin Routes
==================

Operational endpoints for inspecting and invalidating the cache:

- ``GET /admin/cache/stats``: per-namespace hit rate and latency
- ``POST /admin/cache/stats/reset``: reset the in-process windows
- ``POST /admin/cache/invalidate``: remove keys by ``prefix*`` or exact key
- ``POST /admin/cache/entities/{entity_type}/changed``: run domain rules
- ``DELETE /admin/cache``: clear both tiers (remote limited to our prefix)

SECURITY CONSIDERATIONS:
------------------------
These endpoints can evict the whole cache. In production they belong behind
authentication and on an internal listener only.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backoffice_cache.application.api.dependencies import CacheDep, InvalidatorDep
from backoffice_cache.application.api.models import (
    CacheStatsResponse,
    ClearCacheResponse,
    EntityChangedRequest,
    InvalidatePatternRequest,
    InvalidatePatternResponse,
    InvalidationReportResponse,
)
from backoffice_cache.core.exceptions import InvalidCachePatternError
from backoffice_cache.core.logging.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/cache", tags=["Admin"])


async def verify_admin_access() -> None:
    """
    Placeholder for admin authentication.

    The back-office's own session/role check is wired in here by the host
    application; standalone, the endpoints are open.
    """


@router.get(
    "/stats",
    response_model=CacheStatsResponse,
    dependencies=[Depends(verify_admin_access)],
)
async def get_cache_stats(cache: CacheDep):
    """Statistics of every namespace seen since start or last reset."""
    return CacheStatsResponse(namespaces=cache.metrics.get_all_stats())


@router.post(
    "/stats/reset",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(verify_admin_access)],
)
async def reset_cache_stats(cache: CacheDep, namespace: str | None = Query(default=None)):
    """Reset one namespace's window, or all of them."""
    cache.metrics.reset(namespace)


@router.post(
    "/invalidate",
    response_model=InvalidatePatternResponse,
    dependencies=[Depends(verify_admin_access)],
)
async def invalidate_pattern(body: InvalidatePatternRequest, cache: CacheDep):
    """
    Remove keys matching ``prefix*`` or an exact key.

    Raises:
        HTTPException: 400 for unsupported wildcard placement
    """
    try:
        removed = await cache.invalidate_pattern(body.pattern)
    except InvalidCachePatternError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_dict()) from e

    logger.info("Admin pattern invalidation", pattern=body.pattern, removed=removed)
    return InvalidatePatternResponse(pattern=body.pattern, removed=removed)


@router.post(
    "/entities/{entity_type}/changed",
    response_model=InvalidationReportResponse,
    dependencies=[Depends(verify_admin_access)],
)
async def entity_changed(
    entity_type: str, invalidator: InvalidatorDep, body: EntityChangedRequest | None = None
):
    """
    Apply the invalidation rules of an entity type.

    Raises:
        HTTPException: 404 if no rules exist for the entity type
    """
    if not invalidator.templates_for(entity_type):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "unknown_entity_type", "entity_type": entity_type,
                    "known": invalidator.entity_types},
        )

    report = await invalidator.on_entity_changed(entity_type, body.scope if body else None)
    return InvalidationReportResponse(**report.to_dict())


@router.delete(
    "",
    response_model=ClearCacheResponse,
    dependencies=[Depends(verify_admin_access)],
)
async def clear_cache(cache: CacheDep):
    """Clear the local tier and this application's remote keys."""
    removed = await cache.clear()
    logger.warning("Admin cache clear", removed=removed)
    return ClearCacheResponse(removed=removed)
