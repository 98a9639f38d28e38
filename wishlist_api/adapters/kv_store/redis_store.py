"""Redis-backed tag-aware key-value store.

Layout of keys written by this store:
- ``<key>``: JSON payload ``{"v": value, "t": [tags], "e": expires_at}``
  stored with ``EX`` so Redis expires it on its own.
- ``<tag>:__tag_index__``: Redis set of keys carrying ``tag``. Written in the
  same MULTI/EXEC pipeline as the entry and kept alive at least as long as
  its longest-lived member; stale members (expired keys) are harmless
  because invalidation only deletes.
- ``<key>`` for rate limit windows: a sorted set of admission timestamps.

Tag invalidation and the sliding window run as Lua scripts so they are atomic
inside Redis: two concurrent requests from the same client cannot both be
admitted past the limit, and no reader observes a half-invalidated tag.

Every ``redis.RedisError`` is re-raised as ``StoreUnavailableError`` so the
services can apply their degraded-mode policy without importing redis.
"""

from __future__ import annotations

import json
import logging
import math
import time
import uuid
from typing import Any, Iterable

from redis import Redis
from redis.exceptions import RedisError

from wishlist_api.adapters.kv_store.base import CacheEntry, Clock, KeyValueStore, WindowState
from wishlist_api.core.errors import CacheSerializationError, StoreUnavailableError

logger = logging.getLogger(__name__)

TAG_INDEX_SUFFIX = ":__tag_index__"

# KEYS[1]: tag index set
# Returns: number of member keys deleted
DELETE_BY_TAG_LUA = """
local members = redis.call("SMEMBERS", KEYS[1])
local removed = 0
for i = 1, #members do
    removed = removed + redis.call("DEL", members[i])
end
redis.call("DEL", KEYS[1])
return removed
"""

# KEYS: tag index sets
# ARGV[1]: member key
# ARGV[2]: minimum index lifetime in seconds
# An index expiry is only ever extended, never shortened.
ADD_TO_TAG_INDEX_LUA = """
local ttl = tonumber(ARGV[2])
for i = 1, #KEYS do
    redis.call("SADD", KEYS[i], ARGV[1])
    if redis.call("TTL", KEYS[i]) < ttl then
        redis.call("EXPIRE", KEYS[i], ttl)
    end
end
return #KEYS
"""

# KEYS[1]: window sorted set
# ARGV[1]: now (epoch seconds, float)
# ARGV[2]: window length in seconds
# ARGV[3]: limit
# ARGV[4]: cost
# ARGV[5]: unique member prefix for this call
# Returns: {allowed (0/1), count, oldest score as string or ""}
SLIDING_WINDOW_LUA = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local cost = tonumber(ARGV[4])

redis.call("ZREMRANGEBYSCORE", key, "-inf", now - window)
local count = redis.call("ZCARD", key)

local allowed = 0
if count + cost <= limit then
    for i = 1, cost do
        redis.call("ZADD", key, now, ARGV[5] .. ":" .. i)
    end
    count = count + cost
    allowed = 1
end

if count > 0 then
    redis.call("EXPIRE", key, math.ceil(window))
end

local oldest = redis.call("ZRANGE", key, 0, 0, "WITHSCORES")
local oldest_score = ""
if #oldest > 0 then
    oldest_score = oldest[2]
end
return {allowed, count, oldest_score}
"""


class RedisKeyValueStore(KeyValueStore):
    """Key-value store on a synchronous ``redis.Redis`` client.

    The client must be created with ``decode_responses=True``.
    """

    def __init__(
        self,
        client: Redis,
        *,
        tag_index_ttl_seconds: int = 86_400,
        clock: Clock = time.time,
        scan_batch_size: int = 500,
    ) -> None:
        self._client = client
        self._tag_index_ttl = tag_index_ttl_seconds
        self._clock = clock
        self._scan_batch_size = scan_batch_size
        self._delete_by_tag_script = client.register_script(DELETE_BY_TAG_LUA)
        self._tag_index_script = client.register_script(ADD_TO_TAG_INDEX_LUA)
        self._window_script = client.register_script(SLIDING_WINDOW_LUA)

    def get(self, key: str) -> CacheEntry | None:
        try:
            raw = self._client.get(key)
        except RedisError as exc:
            raise self._unavailable("get", key, exc) from exc

        if raw is None:
            return None

        try:
            payload = json.loads(raw)
            entry = CacheEntry(
                key=key,
                value=payload["v"],
                tags=frozenset(payload.get("t", ())),
                expires_at=float(payload["e"]),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("kv_store.corrupt_entry", extra={"cache_key": key[:32]})
            return None

        if entry.is_expired(self._clock()):
            return None
        return entry

    def set(
        self,
        key: str,
        value: Any,
        *,
        tags: Iterable[str] = (),
        ttl_seconds: float,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        tag_list = sorted(set(tags))
        try:
            raw = json.dumps(
                {"v": value, "t": tag_list, "e": self._clock() + ttl_seconds},
                separators=(",", ":"),
            )
        except (TypeError, ValueError) as exc:
            raise CacheSerializationError(
                code="cache_value_not_serializable",
                message=f"Value for '{key}' cannot be stored as JSON",
                details={"key": key, "operation": "set"},
            ) from exc

        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.set(key, raw, ex=max(1, math.ceil(ttl_seconds)))
                if tag_list:
                    self._tag_index_script(
                        keys=[tag + TAG_INDEX_SUFFIX for tag in tag_list],
                        args=[key, max(self._tag_index_ttl, math.ceil(ttl_seconds))],
                        client=pipe,
                    )
                pipe.execute()
        except RedisError as exc:
            raise self._unavailable("set", key, exc) from exc

    def delete(self, key: str) -> bool:
        try:
            return bool(self._client.delete(key))
        except RedisError as exc:
            raise self._unavailable("delete", key, exc) from exc

    def delete_by_tag(self, tag: str) -> int:
        try:
            return int(self._delete_by_tag_script(keys=[tag + TAG_INDEX_SUFFIX]))
        except RedisError as exc:
            raise self._unavailable("delete_by_tag", tag, exc) from exc

    def delete_all(self, namespace: str) -> int:
        removed = 0
        batch: list[str] = []
        try:
            for key in self._client.scan_iter(match=f"{namespace}:*", count=self._scan_batch_size):
                batch.append(key)
                if len(batch) >= self._scan_batch_size:
                    removed += self._client.delete(*batch)
                    batch.clear()
            if batch:
                removed += self._client.delete(*batch)
        except RedisError as exc:
            raise self._unavailable("delete_all", namespace, exc) from exc

        logger.info("kv_store.namespace_flushed", extra={"namespace": namespace, "removed": removed})
        return removed

    def consume_window(
        self,
        key: str,
        *,
        now: float,
        window_seconds: float,
        limit: int,
        cost: int = 1,
    ) -> WindowState:
        try:
            allowed, count, oldest = self._window_script(
                keys=[key],
                args=[repr(now), repr(float(window_seconds)), limit, cost, uuid.uuid4().hex],
            )
        except RedisError as exc:
            raise self._unavailable("consume_window", key, exc) from exc

        return WindowState(
            allowed=bool(int(allowed)),
            count=int(count),
            oldest=float(oldest) if oldest not in ("", b"", None) else None,
        )

    def peek_window(self, key: str, *, now: float, window_seconds: float) -> WindowState:
        # "(" makes the lower bound exclusive, matching the pruning rule
        lower = f"({now - window_seconds!r}"
        try:
            with self._client.pipeline(transaction=False) as pipe:
                pipe.zcount(key, lower, "+inf")
                pipe.zrangebyscore(key, lower, "+inf", start=0, num=1, withscores=True)
                count, oldest = pipe.execute()
        except RedisError as exc:
            raise self._unavailable("peek_window", key, exc) from exc

        return WindowState(
            allowed=True,
            count=int(count),
            oldest=float(oldest[0][1]) if oldest else None,
        )

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError:
            logger.warning("kv_store.ping_failed", exc_info=True)
            return False

    @staticmethod
    def _unavailable(operation: str, key: str, exc: RedisError) -> StoreUnavailableError:
        return StoreUnavailableError(
            code="store_unavailable",
            message=f"Redis {operation} failed: {exc}",
            details={"backend": "redis", "operation": operation, "key": key[:64]},
        )
