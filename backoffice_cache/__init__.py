"""
Back-office read-through cache layer.

Two-tier (in-process + Redis) cache with stale-while-revalidate,
single-flight computation and pattern-based domain invalidation.
"""

__version__ = "1.0.0"
