"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from wishlist_api.services.cache_policy import TtlPolicy
from wishlist_api.services.rate_limit_policy import EndpointClass, RateLimitPolicy


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def _build_store_settings() -> "StoreSettings":
    return StoreSettings()  # type: ignore[call-arg]


def _build_cache_settings() -> "CacheSettings":
    return CacheSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required on admin routes",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for admin routes",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level (DEBUG, INFO, WARNING, ...)")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format: structured JSON or plain text",
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read/propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Backing key-value store shared by the cache and the rate limiter."""

    backend: Literal["memory", "redis"] = Field(
        "memory",
        description="Store implementation: process-local memory or Redis",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL (backend=redis)",
    )
    socket_timeout_seconds: float = Field(
        0.5,
        description="Redis socket/connect timeout in seconds",
        gt=0,
    )
    max_entries: int | None = Field(
        10_000,
        description="LRU bound for the in-memory store (None for unlimited)",
        ge=1,
    )
    tag_index_ttl_seconds: int = Field(
        86_400,
        description="TTL refreshed on Redis tag index sets whenever a key is tagged",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Wishlist cache TTL buckets and tiering."""

    namespace: str = Field(
        "wishlist_cache",
        description="Key prefix owned by the cache; clear_all only flushes this namespace",
        min_length=1,
    )
    ttl_default: int = Field(3600, description="Default TTL bucket (seconds)", ge=1)
    ttl_customer: int = Field(1800, description="Customer data TTL bucket (seconds)", ge=1)
    ttl_wishlist: int = Field(3600, description="Wishlist data TTL bucket (seconds)", ge=1)
    ttl_default_wishlist: int = Field(
        1800,
        description="Default-wishlist TTL bucket (seconds)",
        ge=1,
    )
    l1_enabled: bool = Field(
        True,
        description="Keep a process-local L1 tier in front of the shared store",
    )
    l1_ttl_seconds: int = Field(
        300,
        description="Upper bound for L1 entry lifetime",
        ge=1,
    )
    l1_max_entries: int = Field(1000, description="LRU bound for the L1 tier", ge=1)
    max_tracked_operations: int = Field(
        1000,
        description="Maximum number of operation labels kept in performance metrics",
        ge=1,
    )
    trace_memory: bool = Field(
        False,
        description="Start tracemalloc so metrics report allocation deltas",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )

    def ttl_policy(self) -> TtlPolicy:
        return TtlPolicy(
            default=self.ttl_default,
            customer=self.ttl_customer,
            wishlist=self.ttl_wishlist,
            default_wishlist=self.ttl_default_wishlist,
        )


class RateLimitSettings(BaseSettings):
    """Per-endpoint-class sliding-window quotas."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting of classified wishlist endpoints",
    )
    namespace: str = Field(
        "wishlist_rate_limit",
        description="Key prefix for sliding-window records",
        min_length=1,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers on responses",
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Use the first X-Forwarded-For address as client address",
    )

    read_limit: int = Field(200, ge=1)
    read_window_seconds: int = Field(3600, ge=1)
    write_limit: int = Field(50, ge=1)
    write_window_seconds: int = Field(3600, ge=1)
    bulk_limit: int = Field(10, ge=1)
    bulk_window_seconds: int = Field(3600, ge=1)
    analytics_limit: int = Field(100, ge=1)
    analytics_window_seconds: int = Field(3600, ge=1)
    auth_limit: int = Field(20, ge=1)
    auth_window_seconds: int = Field(900, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    def policies(self) -> dict[EndpointClass, RateLimitPolicy]:
        """Build the closed policy table from the flat settings fields."""
        return {
            endpoint_class: RateLimitPolicy(
                limit=getattr(self, f"{endpoint_class.value}_limit"),
                window_seconds=getattr(self, f"{endpoint_class.value}_window_seconds"),
            )
            for endpoint_class in EndpointClass
        }


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    cache: CacheSettings = Field(default_factory=_build_cache_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
