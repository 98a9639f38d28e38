"""Process-wide service instances and their FastAPI dependency providers.

The store, cache service and rate limit service are cached in-module so
state survives across requests. If the relevant configuration changes
(primarily in tests), the instances are rebuilt on next access.
"""

from __future__ import annotations

import logging

from wishlist_api.adapters.kv_store.base import KeyValueStore
from wishlist_api.adapters.kv_store.factory import create_key_value_store
from wishlist_api.adapters.kv_store.in_memory import InMemoryKeyValueStore
from wishlist_api.core.config import settings
from wishlist_api.services.rate_limit_service import RateLimitService
from wishlist_api.services.wishlist_cache_service import WishlistCacheService

logger = logging.getLogger(__name__)


_store: KeyValueStore | None = None
_store_config: tuple | None = None
_cache_service: WishlistCacheService | None = None
_cache_config: tuple | None = None
_rate_limit_service: RateLimitService | None = None
_rate_limit_config: tuple | None = None


def get_key_value_store() -> KeyValueStore:
    """Return the shared key-value store (L2 cache tier and rate limit windows)."""

    global _store, _store_config

    config = (
        settings.store.backend,
        settings.store.redis_url,
        settings.store.max_entries,
    )
    if _store is None or _store_config != config:
        _store = create_key_value_store(settings.store)
        _store_config = config

    return _store


def get_cache_service() -> WishlistCacheService:
    """Return the process-wide wishlist cache service."""

    global _cache_service, _cache_config

    store = get_key_value_store()
    cfg = settings.cache
    config = (
        id(store),
        cfg.namespace,
        cfg.l1_enabled,
        cfg.l1_ttl_seconds,
        cfg.l1_max_entries,
        cfg.max_tracked_operations,
        cfg.ttl_default,
        cfg.ttl_customer,
        cfg.ttl_wishlist,
        cfg.ttl_default_wishlist,
    )

    if _cache_service is None or _cache_config != config:
        l1_store = InMemoryKeyValueStore(max_entries=cfg.l1_max_entries) if cfg.l1_enabled else None
        _cache_service = WishlistCacheService(
            store,
            l1_store=l1_store,
            ttl_policy=cfg.ttl_policy(),
            namespace=cfg.namespace,
            l1_ttl_seconds=cfg.l1_ttl_seconds,
            max_tracked_operations=cfg.max_tracked_operations,
        )
        _cache_config = config
        logger.info(
            "cache_service.created",
            extra={"namespace": cfg.namespace, "l1_enabled": cfg.l1_enabled},
        )

    return _cache_service


def get_rate_limit_service() -> RateLimitService:
    """Return the process-wide rate limit service."""

    global _rate_limit_service, _rate_limit_config

    store = get_key_value_store()
    policies = settings.rate_limit.policies()
    config = (id(store), settings.rate_limit.namespace, tuple(sorted(
        (endpoint_class.value, policy.limit, policy.window_seconds)
        for endpoint_class, policy in policies.items()
    )))

    if _rate_limit_service is None or _rate_limit_config != config:
        _rate_limit_service = RateLimitService(
            store,
            policies=policies,
            namespace=settings.rate_limit.namespace,
        )
        _rate_limit_config = config

    return _rate_limit_service


def reset_services() -> None:
    """Drop cached instances so the next access rebuilds them (tests)."""

    global _store, _store_config, _cache_service, _cache_config
    global _rate_limit_service, _rate_limit_config

    _store = None
    _store_config = None
    _cache_service = None
    _cache_config = None
    _rate_limit_service = None
    _rate_limit_config = None
