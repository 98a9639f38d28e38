"""Key-value store interfaces.

The cache and the rate limiter depend on this abstraction (not on a concrete
backend) so the same services run against process memory in tests and
single-worker deployments, and against Redis when several workers must
share entries and quotas.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    """A stored value with its tags and absolute expiry.

    Attributes:
        key: Store key (already namespaced by the caller).
        value: Opaque payload.
        tags: Labels used for group invalidation.
        expires_at: UNIX epoch seconds after which the entry is absent.
    """

    key: str
    value: Any
    tags: frozenset[str]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def ttl_remaining(self, now: float) -> float:
        return max(0.0, self.expires_at - now)


@dataclass(frozen=True)
class WindowState:
    """Outcome of a sliding-window consume or peek.

    Attributes:
        allowed: Whether the requested cost fit in the window (always True
            for a peek).
        count: Admissions recorded in the trailing window after the call.
        oldest: Timestamp of the oldest admission still in the window, or
            None when the window is empty.
    """

    allowed: bool
    count: int
    oldest: float | None


class KeyValueStore(ABC):
    """Tag-aware key-value store with an atomic sliding-window primitive."""

    @abstractmethod
    def get(self, key: str) -> CacheEntry | None:
        """Return the live entry for ``key`` or None if absent/expired."""
        raise NotImplementedError

    @abstractmethod
    def set(
        self,
        key: str,
        value: Any,
        *,
        tags: Iterable[str] = (),
        ttl_seconds: float,
    ) -> None:
        """Store or overwrite ``key``, indexing it under every tag."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if something was deleted."""
        raise NotImplementedError

    @abstractmethod
    def delete_by_tag(self, tag: str) -> int:
        """Remove every key tagged with ``tag``. Returns the number removed."""
        raise NotImplementedError

    @abstractmethod
    def delete_all(self, namespace: str) -> int:
        """Remove every key (entries and windows) under ``namespace:``."""
        raise NotImplementedError

    @abstractmethod
    def consume_window(
        self,
        key: str,
        *,
        now: float,
        window_seconds: float,
        limit: int,
        cost: int = 1,
    ) -> WindowState:
        """Atomically prune, check and record ``cost`` admissions at ``now``.

        Admissions older than ``now - window_seconds`` are discarded first.
        The request is recorded only if ``count + cost <= limit``.
        """
        raise NotImplementedError

    @abstractmethod
    def peek_window(self, key: str, *, now: float, window_seconds: float) -> WindowState:
        """Report the trailing window without recording anything."""
        raise NotImplementedError

    def ping(self) -> bool:
        """Return True when the backend is reachable."""
        return True
