"""
System Constants and Enumerations

Architectural Decision: Centralized constants for maintainability
- Single source of truth for separators, tags and stage identifiers
- Type-safe enums for cache outcomes and error kinds
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Cache processing stages used as the ``stage`` field in log events.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    CACHE_LOOKUP = "2.0_CACHE_LOOKUP"
    CACHE_POPULATION = "2.3_CACHE_POPULATION"
    CACHE_INVALIDATION = "2.4_CACHE_INVALIDATION"
    BACKGROUND_REFRESH = "2.6_BACKGROUND_REFRESH"
    DOMAIN_INVALIDATION = "3.0_DOMAIN_INVALIDATION"
    SHUTDOWN = "6.0_SHUTDOWN"

    REMOTE_TIER = "R_REMOTE_TIER"


# ============================================================================
# Cache Outcomes (reported to the metrics collector)
# ============================================================================


class CacheOutcome(str, Enum):
    """Outcome categories of a read-through lookup."""

    FRESH_HIT = "fresh_hit"
    STALE_HIT = "stale_hit"
    MISS = "miss"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Sources of errors counted per namespace."""

    COMPUTE = "compute"
    REFRESH = "refresh"
    REMOTE = "remote"
    SERIALIZATION = "serialization"
    INVALIDATION = "invalidation"


# ============================================================================
# Key Encoding
# ============================================================================

KEY_SEPARATOR = ":"
WILDCARD = "*"

# Prefix marking a typed (non-string) fragment; always percent-encoded inside strings
TYPE_TAG = "!"
TAG_INT = "i"
TAG_FLOAT = "f"
TAG_BOOL = "b"
TAG_JSON = "j"
TAG_OBJECT = "o"

# Characters with meaning to Redis glob matching
REDIS_GLOB_SPECIAL = "*?[]\\"

# ============================================================================
# Remote Tier
# ============================================================================

REMOTE_SCAN_BATCH_SIZE = 500

# Keys of the serialized entry envelope stored in Redis
ENVELOPE_VALUE = "v"
ENVELOPE_BYTES = "b"
ENVELOPE_CREATED_AT = "c"
ENVELOPE_EXPIRES_AT = "e"
ENVELOPE_STALE_UNTIL = "s"
ENVELOPE_GRACE_UNTIL = "g"

# ============================================================================
# Metrics
# ============================================================================

PERCENTILE_P95 = 0.95
PERCENTILE_P99 = 0.99

# ============================================================================
# HTTP
# ============================================================================

API_PREFIX = "/api/v1"
HEADER_REQUEST_ID = "X-Request-ID"
