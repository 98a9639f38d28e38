"""Key-value store adapters shared by the cache and the rate limiter."""

from wishlist_api.adapters.kv_store.base import CacheEntry, KeyValueStore, WindowState
from wishlist_api.adapters.kv_store.factory import create_key_value_store
from wishlist_api.adapters.kv_store.in_memory import InMemoryKeyValueStore
from wishlist_api.adapters.kv_store.redis_store import RedisKeyValueStore

__all__ = [
    "CacheEntry",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
    "WindowState",
    "create_key_value_store",
]
