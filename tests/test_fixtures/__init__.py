"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .cache_factory import FakeClock, InMemoryRedis, make_settings

__all__ = ["FakeClock", "InMemoryRedis", "make_settings"]
