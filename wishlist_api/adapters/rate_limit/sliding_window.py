"""Sliding-window rate limiter over a key-value store.

Each key owns a rolling log of admission timestamps. A request is admitted
when fewer than ``limit`` admissions fall inside the trailing
``window_seconds``; the window never resets at fixed boundaries.

Notes:
- Shared across workers when the store is shared (Redis).
- The check-and-record is a single store call, so concurrent requests for the
  same key cannot both slip past the limit.
"""

from __future__ import annotations

import math
import time

from wishlist_api.adapters.kv_store.base import Clock, KeyValueStore, WindowState
from wishlist_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter enforcing ``limit`` admissions per trailing window."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        limit: int,
        window_seconds: int,
        namespace: str = "rate_limit",
        clock: Clock = time.time,
    ) -> None:
        """Initialize the sliding-window rate limiter.

        Args:
            store: Backing store providing the atomic window primitive.
            limit: Maximum number of allowed units per window.
            window_seconds: Length of the trailing window in seconds.
            namespace: Prefix for window keys in the store.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._namespace = namespace
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def _window_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _reset_at(self, state: WindowState, now: float) -> int:
        """Epoch second at which the oldest admission slides out."""
        if state.oldest is None:
            return int(now)
        return int(math.ceil(state.oldest + self._window_seconds))

    def _build_result(self, state: WindowState, now: float) -> RateLimitResult:
        remaining = max(0, self._limit - state.count)
        reset_at = self._reset_at(state, now)

        if state.allowed:
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=remaining,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=max(1, int(math.ceil(reset_at - now))),
        )

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Args:
            key: Unique identifier for rate limiting (e.g., client fingerprint).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
            StoreError: If the backing store fails.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        state = self._store.consume_window(
            self._window_key(key),
            now=now,
            window_seconds=self._window_seconds,
            limit=self._limit,
            cost=cost,
        )
        return self._build_result(state, now)

    def peek(self, key: str) -> RateLimitResult:
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        state = self._store.peek_window(
            self._window_key(key),
            now=now,
            window_seconds=self._window_seconds,
        )
        return self._build_result(state, now)
