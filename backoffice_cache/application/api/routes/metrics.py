"""
Prometheus Metrics Route
========================

Prometheus scrapes this endpoint (pull model). The body is the text
exposition format, so it is returned as a raw Response, not JSON:

    # HELP backoffice_cache_lookups_total Cache lookups by outcome
    # TYPE backoffice_cache_lookups_total counter
    backoffice_cache_lookups_total{namespace="invoices",outcome="fresh_hit"} 42.0
"""

from fastapi import APIRouter, Response

from backoffice_cache.application.api.dependencies import CacheDep

router = APIRouter(tags=["Metrics"])


@router.get("/metrics")
async def get_prometheus_metrics(cache: CacheDep):
    """Expose metrics in Prometheus text format for scraping."""
    metrics_collector = cache.metrics
    return Response(
        content=metrics_collector.get_prometheus_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
