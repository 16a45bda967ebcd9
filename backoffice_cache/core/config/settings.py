#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
back-office cache layer. All configuration is centralized here so the cache
facade, the remote tier and the operational API agree on the same values.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Per-namespace TTL / stale-while-revalidate table loaded once, no hot-reload
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NamespacePolicy(BaseModel):
    """
    Cache policy for one logical resource family (e.g. "invoices").

    STAGE-0.2: Namespace policy

    Attributes:
        ttl_seconds: Fresh lifetime of an entry.
        stale_while_revalidate_seconds: Extra window during which an expired
            entry is still served while a background refresh runs.
        error_grace_seconds: Extra window after the stale window during which
            the entry is served only if recomputation fails (0 disables).
    """

    ttl_seconds: int = Field(default=300, gt=0)
    stale_while_revalidate_seconds: int = Field(default=0, ge=0)
    error_grace_seconds: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


# TTLs mirror the reference table used by the back-office list/statistics pages
DEFAULT_NAMESPACE_POLICIES: dict[str, NamespacePolicy] = {
    "inventory-summary": NamespacePolicy(ttl_seconds=60, stale_while_revalidate_seconds=30),
    "inventory-analytics": NamespacePolicy(ttl_seconds=600, stale_while_revalidate_seconds=120),
    "low-stock-alerts": NamespacePolicy(ttl_seconds=30),
    "invoices": NamespacePolicy(ttl_seconds=120, stale_while_revalidate_seconds=60),
    "invoice-statistics": NamespacePolicy(ttl_seconds=300, stale_while_revalidate_seconds=120),
    "purchase-invoices": NamespacePolicy(ttl_seconds=120, stale_while_revalidate_seconds=60),
    "products": NamespacePolicy(ttl_seconds=300, stale_while_revalidate_seconds=60),
    "transfers": NamespacePolicy(ttl_seconds=120, stale_while_revalidate_seconds=60),
    "dashboard": NamespacePolicy(ttl_seconds=300, stale_while_revalidate_seconds=300),
    "categories": NamespacePolicy(ttl_seconds=3600),
    "shops": NamespacePolicy(ttl_seconds=3600),
    "customers": NamespacePolicy(ttl_seconds=3600),
    "auth-session": NamespacePolicy(ttl_seconds=900),
    "auth-permissions": NamespacePolicy(ttl_seconds=1800),
    "auth-role-permissions": NamespacePolicy(ttl_seconds=3600),
}


class RedisSettings(BaseSettings):
    """
    Redis configuration for the shared (remote) cache tier.

    STAGE-0.1: Redis connection configuration

    The remote tier is optional: with REDIS_ENABLED=false the cache runs on
    the in-process tier only.
    """

    REDIS_ENABLED: bool = Field(default=True, description="Use Redis as the shared cache tier")
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=1.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=1.0, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Caching configuration for the two-tier read-through cache.

    STAGE-2: Cache TTL configuration
    """

    CACHE_ENABLED: bool = Field(default=True, description="Master switch for caching")
    CACHE_KEY_PREFIX: str = Field(default="backoffice:cache", description="Remote key namespace")
    CACHE_L1_MAX_SIZE: int = Field(default=1000, gt=0, description="Local tier max entries")
    CACHE_DEFAULT_TTL: int = Field(default=300, gt=0, description="TTL for unknown namespaces")
    CACHE_DEFAULT_STALE_SECONDS: int = Field(default=0, ge=0, description="Stale window for unknown namespaces")
    CACHE_DEFAULT_ERROR_GRACE_SECONDS: int = Field(default=0, ge=0, description="Error grace for unknown namespaces")
    CACHE_REMOTE_TIMEOUT_MS: int = Field(default=250, gt=0, description="Timeout for remote get/set/delete/ping")
    CACHE_REMOTE_SCAN_TIMEOUT_MS: int = Field(default=2000, gt=0, description="Timeout for remote pattern scans")
    CACHE_REMOTE_CLEAR_ENABLED: bool = Field(default=True, description="clear() also removes prefixed remote keys")
    CACHE_LATENCY_WINDOW: int = Field(default=1000, gt=0, description="Latency samples kept per namespace")
    CACHE_NAMESPACES: dict[str, NamespacePolicy] = Field(default_factory=lambda: dict(DEFAULT_NAMESPACE_POLICIES))

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)

    @property
    def default_policy(self) -> NamespacePolicy:
        """Policy applied to keys whose namespace has no entry in the table."""
        return NamespacePolicy(
            ttl_seconds=self.CACHE_DEFAULT_TTL,
            stale_while_revalidate_seconds=self.CACHE_DEFAULT_STALE_SECONDS,
            error_grace_seconds=self.CACHE_DEFAULT_ERROR_GRACE_SECONDS,
        )

    def policy_for(self, namespace: str) -> NamespacePolicy:
        """Resolve the policy for a namespace, falling back to the default."""
        return self.CACHE_NAMESPACES.get(namespace, self.default_policy)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Back-office Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from backoffice_cache.core.config.settings import get_settings

        settings = get_settings()
        redis_host = settings.redis.REDIS_HOST
        policy = settings.cache.policy_for("invoices")

    The flat fields are what the environment populates; the grouped
    properties give each component only the section it needs.
    """

    # Redis settings
    REDIS_ENABLED: bool = Field(default=True, description="Use Redis as the shared cache tier")
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=1.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=1.0, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    # Cache settings
    CACHE_ENABLED: bool = Field(default=True, description="Master switch for caching")
    CACHE_KEY_PREFIX: str = Field(default="backoffice:cache", description="Remote key namespace")
    CACHE_L1_MAX_SIZE: int = Field(default=1000, gt=0, description="Local tier max entries")
    CACHE_DEFAULT_TTL: int = Field(default=300, gt=0, description="TTL for unknown namespaces")
    CACHE_DEFAULT_STALE_SECONDS: int = Field(default=0, ge=0, description="Stale window for unknown namespaces")
    CACHE_DEFAULT_ERROR_GRACE_SECONDS: int = Field(default=0, ge=0, description="Error grace for unknown namespaces")
    CACHE_REMOTE_TIMEOUT_MS: int = Field(default=250, gt=0, description="Timeout for remote get/set/delete/ping")
    CACHE_REMOTE_SCAN_TIMEOUT_MS: int = Field(default=2000, gt=0, description="Timeout for remote pattern scans")
    CACHE_REMOTE_CLEAR_ENABLED: bool = Field(default=True, description="clear() also removes prefixed remote keys")
    CACHE_LATENCY_WINDOW: int = Field(default=1000, gt=0, description="Latency samples kept per namespace")
    CACHE_NAMESPACES: dict[str, NamespacePolicy] = Field(default_factory=lambda: dict(DEFAULT_NAMESPACE_POLICIES))

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Back-office Cache Service", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("CACHE_NAMESPACES")
    @classmethod
    def merge_namespace_defaults(cls, v: dict[str, NamespacePolicy]) -> dict[str, NamespacePolicy]:
        """Overrides from the environment extend the built-in table rather than replace it."""
        return {**DEFAULT_NAMESPACE_POLICIES, **v}

    # Nested configuration objects
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_ENABLED=self.REDIS_ENABLED,
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_ENABLED=self.CACHE_ENABLED,
            CACHE_KEY_PREFIX=self.CACHE_KEY_PREFIX,
            CACHE_L1_MAX_SIZE=self.CACHE_L1_MAX_SIZE,
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_DEFAULT_STALE_SECONDS=self.CACHE_DEFAULT_STALE_SECONDS,
            CACHE_DEFAULT_ERROR_GRACE_SECONDS=self.CACHE_DEFAULT_ERROR_GRACE_SECONDS,
            CACHE_REMOTE_TIMEOUT_MS=self.CACHE_REMOTE_TIMEOUT_MS,
            CACHE_REMOTE_SCAN_TIMEOUT_MS=self.CACHE_REMOTE_SCAN_TIMEOUT_MS,
            CACHE_REMOTE_CLEAR_ENABLED=self.CACHE_REMOTE_CLEAR_ENABLED,
            CACHE_LATENCY_WINDOW=self.CACHE_LATENCY_WINDOW,
            CACHE_NAMESPACES=self.CACHE_NAMESPACES,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
