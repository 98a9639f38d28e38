"""In-memory tag-aware key-value store.

Notes:
- Per-process only: running multiple workers gives each its own entries and
  its own rate limit windows (use the Redis store to share them).
- Thread-safe: a single lock guards entries, the tag index and windows, so
  tag invalidation and window consumption are atomic for readers.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict, deque
from typing import Any, Iterable

from wishlist_api.adapters.kv_store.base import CacheEntry, Clock, KeyValueStore, WindowState

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore(KeyValueStore):
    """Thread-safe TTL store with LRU eviction and a tag -> keys index.

    Attributes:
        max_entries: Maximum number of cached entries (None for unlimited).
            Sliding-window records are not counted against this bound.
    """

    def __init__(self, *, max_entries: int | None = 10_000, clock: Clock = time.time) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._tag_index: dict[str, set[str]] = {}
        self._windows: dict[str, deque[float]] = {}
        # key -> time at which the newest admission leaves the window
        self._window_expiry: dict[str, float] = {}
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryKeyValueStore(max_entries={self._max_entries}, "
            f"entries={len(self._entries)}, windows={len(self._windows)}, "
            f"evictions={self._evictions})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if entry.is_expired(self._clock()):
                self._remove_locked(key)
                self._evictions += 1
                return None

            self._entries.move_to_end(key)  # mark as recently used
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

        entry = CacheEntry(
            key=key,
            value=value,
            tags=frozenset(tags),
            expires_at=self._clock() + ttl_seconds,
        )

        with self._lock:
            self._evict_expired_locked()
            # Drop stale tag memberships of a previous value under this key
            self._remove_locked(key)
            self._entries[key] = entry
            for tag in entry.tags:
                self._tag_index.setdefault(tag, set()).add(key)
            self._evict_if_over_capacity_locked()

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._remove_locked(key)

    def delete_by_tag(self, tag: str) -> int:
        with self._lock:
            keys = self._tag_index.pop(tag, set())
            removed = 0
            for key in list(keys):
                if self._remove_locked(key):
                    removed += 1
            return removed

    def delete_all(self, namespace: str) -> int:
        prefix = f"{namespace}:"
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for key in keys:
                self._remove_locked(key)

            windows = [k for k in self._windows if k.startswith(prefix)]
            for key in windows:
                self._drop_window_locked(key)

            for tag in [t for t in self._tag_index if t.startswith(prefix)]:
                del self._tag_index[tag]

            return len(keys) + len(windows)

    def consume_window(
        self,
        key: str,
        *,
        now: float,
        window_seconds: float,
        limit: int,
        cost: int = 1,
    ) -> WindowState:
        with self._lock:
            self._evict_expired_windows_locked(now)
            log = self._windows.setdefault(key, deque())
            self._prune_window(log, now - window_seconds)

            allowed = len(log) + cost <= limit
            if allowed:
                log.extend([now] * cost)

            state = WindowState(
                allowed=allowed,
                count=len(log),
                oldest=log[0] if log else None,
            )
            if log:
                self._window_expiry[key] = log[-1] + window_seconds
            else:
                self._drop_window_locked(key)
            return state

    def peek_window(self, key: str, *, now: float, window_seconds: float) -> WindowState:
        cutoff = now - window_seconds
        with self._lock:
            live = [ts for ts in self._windows.get(key, ()) if ts > cutoff]
            return WindowState(allowed=True, count=len(live), oldest=live[0] if live else None)

    def stats(self) -> dict[str, int | None]:
        """Return lightweight store metrics without exposing values."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._entries),
                "tags": len(self._tag_index),
                "windows": len(self._windows),
                "evictions": self._evictions,
            }

    @staticmethod
    def _prune_window(log: deque[float], cutoff: float) -> None:
        while log and log[0] <= cutoff:
            log.popleft()

    def _drop_window_locked(self, key: str) -> None:
        self._windows.pop(key, None)
        self._window_expiry.pop(key, None)

    def _evict_expired_windows_locked(self, now: float) -> None:
        expired_keys = [k for k, expires_at in self._window_expiry.items() if expires_at <= now]
        for key in expired_keys:
            self._drop_window_locked(key)

    def _remove_locked(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry.tags:
            members = self._tag_index.get(tag)
            if members is None:
                continue
            members.discard(key)
            if not members:
                del self._tag_index[tag]
        return True

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired_keys = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired_keys:
            self._remove_locked(key)
            self._evictions += 1

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._entries) > self._max_entries:
            # The first entry is the least recently used one
            oldest_key = next(iter(self._entries))
            self._remove_locked(oldest_key)
            self._evictions += 1
            logger.debug("kv_store.evicted", extra={"cache_key": oldest_key[:32]})
