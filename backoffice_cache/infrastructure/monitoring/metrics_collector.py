#!/usr/bin/env python3
"""
Cache Metrics Collector with Prometheus Integration

This module provides per-namespace cache metrics with:
- Hit / stale-hit / miss counts and hit rate
- Error counts by source (compute, refresh, remote, ...)
- Latency average and p95 / p99 over a bounded sample window
- Mirroring into Prometheus counters and histograms

Architectural Decision: prometheus-client for industry-standard metrics
- Compatible with Grafana dashboards
- The in-process window answers the admin stats endpoint without a
  Prometheus server in the loop
"""

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

from backoffice_cache.core.config.constants import (
    PERCENTILE_P95,
    PERCENTILE_P99,
    CacheOutcome,
    ErrorKind,
)
from backoffice_cache.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

CACHE_LOOKUPS = Counter(
    'backoffice_cache_lookups_total',
    'Cache lookups by outcome',
    ['namespace', 'outcome']  # fresh_hit, stale_hit, miss
)

CACHE_ERRORS = Counter(
    'backoffice_cache_errors_total',
    'Cache errors by source',
    ['namespace', 'kind']
)

CACHE_LATENCY = Histogram(
    'backoffice_cache_lookup_duration_seconds',
    'Cache lookup latency in seconds',
    ['namespace'],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

APP_INFO = Info(
    'backoffice_cache_app',
    'Application information'
)


@dataclass
class MetricsWindow:
    """Counters and latency samples for one namespace."""

    max_samples: int
    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    errors: dict[str, int] = field(default_factory=dict)
    latencies: deque = field(init=False)

    def __post_init__(self):
        self.latencies = deque(maxlen=self.max_samples)


def percentile(sorted_samples: list[float], p: float) -> float:
    """
    Nearest-rank percentile over an already sorted list.

    Index is floor(count * p), clamped to the last sample.
    """
    if not sorted_samples:
        return 0.0
    index = min(math.floor(len(sorted_samples) * p), len(sorted_samples) - 1)
    return sorted_samples[index]


class MetricsCollector:
    """
    Per-namespace cache metrics.

    STAGE-M: Metrics collection

    Usage:
        metrics = MetricsCollector(latency_window=1000)

        metrics.record_hit("invoices", 0.4)
        metrics.record_miss("invoices", 85.0)

        metrics.get_stats("invoices")["hit_rate"]  # 0.5
    """

    def __init__(self, latency_window: int = 1000, settings=None):
        """
        Args:
            latency_window: Latency samples kept per namespace
            settings: Optional settings, used to publish app info
        """
        self._latency_window = latency_window
        self._windows: dict[str, MetricsWindow] = {}

        if settings is not None:
            APP_INFO.info({
                'version': settings.app.APP_VERSION,
                'environment': settings.app.ENVIRONMENT,
                'app_name': settings.app.APP_NAME,
            })

        logger.info("Metrics collector initialized", stage="M.0", latency_window=latency_window)

    def _window(self, namespace: str) -> MetricsWindow:
        window = self._windows.get(namespace)
        if window is None:
            window = MetricsWindow(max_samples=self._latency_window)
            self._windows[namespace] = window
        return window

    # =========================================================================
    # Recording
    # =========================================================================

    def record_hit(self, namespace: str, latency_ms: float, stale: bool = False) -> None:
        """Record a hit. Stale hits count as hits and also as stale hits."""
        window = self._window(namespace)
        window.hits += 1
        if stale:
            window.stale_hits += 1
        window.latencies.append(latency_ms)

        outcome = CacheOutcome.STALE_HIT if stale else CacheOutcome.FRESH_HIT
        CACHE_LOOKUPS.labels(namespace=namespace, outcome=outcome.value).inc()
        CACHE_LATENCY.labels(namespace=namespace).observe(latency_ms / 1000)

    def record_miss(self, namespace: str, latency_ms: float) -> None:
        """Record a miss, including the compute time."""
        window = self._window(namespace)
        window.misses += 1
        window.latencies.append(latency_ms)

        CACHE_LOOKUPS.labels(namespace=namespace, outcome=CacheOutcome.MISS.value).inc()
        CACHE_LATENCY.labels(namespace=namespace).observe(latency_ms / 1000)

    def record_error(
        self,
        namespace: str,
        kind: ErrorKind | str = ErrorKind.COMPUTE,
        latency_ms: float | None = None,
    ) -> None:
        """
        Record an error of the given kind.

        With a latency the error ended a lookup: the latency joins the window
        and the lookup is counted under the error outcome. Tier errors that
        did not end a lookup are recorded without one.
        """
        kind_name = getattr(kind, "value", kind)
        window = self._window(namespace)
        window.errors[kind_name] = window.errors.get(kind_name, 0) + 1

        CACHE_ERRORS.labels(namespace=namespace, kind=kind_name).inc()

        if latency_ms is not None:
            window.latencies.append(latency_ms)
            CACHE_LOOKUPS.labels(namespace=namespace, outcome=CacheOutcome.ERROR.value).inc()
            CACHE_LATENCY.labels(namespace=namespace).observe(latency_ms / 1000)

    # =========================================================================
    # Reporting
    # =========================================================================

    def get_stats(self, namespace: str) -> dict[str, Any]:
        """
        Snapshot of one namespace.

        Returns:
            Dict with hits, misses, stale_hits, errors, hit_rate, avg_latency,
            p95, p99 and samples. All zero for an unseen namespace.
        """
        window = self._windows.get(namespace) or MetricsWindow(max_samples=self._latency_window)
        total = window.hits + window.misses
        samples = sorted(window.latencies)

        return {
            "hits": window.hits,
            "misses": window.misses,
            "stale_hits": window.stale_hits,
            "errors": sum(window.errors.values()),
            "errors_by_kind": dict(window.errors),
            "hit_rate": round(window.hits / total, 4) if total else 0.0,
            "avg_latency": round(sum(samples) / len(samples), 3) if samples else 0.0,
            "p95": percentile(samples, PERCENTILE_P95),
            "p99": percentile(samples, PERCENTILE_P99),
            "samples": len(samples),
        }

    def get_all_stats(self) -> dict[str, dict[str, Any]]:
        """Snapshot of every namespace seen since start or last reset."""
        return {namespace: self.get_stats(namespace) for namespace in sorted(self._windows)}

    def reset(self, namespace: str | None = None) -> None:
        """
        Reset the in-process window of one namespace, or all of them.

        Prometheus counters are monotonic and are not reset.
        """
        if namespace is None:
            self._windows.clear()
        else:
            self._windows.pop(namespace, None)
        logger.info("Cache metrics reset", stage="M.1", namespace=namespace or "*")

    def namespaces(self) -> list[str]:
        return sorted(self._windows)

    # =========================================================================
    # Export
    # =========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """
        Get Prometheus metrics output.

        Returns:
            bytes: Prometheus text format metrics
        """
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST
