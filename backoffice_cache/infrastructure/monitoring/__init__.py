"""
Monitoring Module

Per-namespace cache metrics (with Prometheus export) and health checks.
"""

from .health_checker import HealthChecker, HealthStatus
from .metrics_collector import MetricsCollector

__all__ = [
    "HealthChecker",
    "HealthStatus",
    "MetricsCollector",
]
