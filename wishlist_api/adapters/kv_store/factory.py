"""Factory for the backing key-value store."""

from __future__ import annotations

import logging
import time

from redis import Redis

from wishlist_api.adapters.kv_store.base import Clock, KeyValueStore
from wishlist_api.adapters.kv_store.in_memory import InMemoryKeyValueStore
from wishlist_api.adapters.kv_store.redis_store import RedisKeyValueStore
from wishlist_api.core.config import StoreSettings, settings
from wishlist_api.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_key_value_store(
    store_settings: StoreSettings | None = None,
    *,
    clock: Clock = time.time,
) -> KeyValueStore:
    """Instantiate the store selected by ``STORE_BACKEND``.

    The Redis client is created lazily-connecting: no network traffic happens
    until the first command, so an unreachable Redis degrades requests
    instead of failing application startup.

    Args:
        store_settings: Store configuration; defaults to global settings.
        clock: Time source shared with the services.

    Returns:
        KeyValueStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend name is not supported.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        logger.info("kv_store.created", extra={"backend": "memory", "max_entries": cfg.max_entries})
        return InMemoryKeyValueStore(max_entries=cfg.max_entries, clock=clock)

    if backend == "redis":
        client = Redis.from_url(
            cfg.redis_url,
            decode_responses=True,
            socket_timeout=cfg.socket_timeout_seconds,
            socket_connect_timeout=cfg.socket_timeout_seconds,
            retry_on_timeout=False,
        )
        logger.info("kv_store.created", extra={"backend": "redis", "redis_url": cfg.redis_url})
        return RedisKeyValueStore(
            client,
            tag_index_ttl_seconds=cfg.tag_index_ttl_seconds,
            clock=clock,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{cfg.backend}'. Supported backends: memory, redis",
    )
