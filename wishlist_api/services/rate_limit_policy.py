"""Rate limit policies per endpoint class."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EndpointClass(str, Enum):
    """Coarse API operation category used to select a rate limit policy."""

    READ = "read"
    WRITE = "write"
    BULK = "bulk"
    ANALYTICS = "analytics"
    AUTH = "auth"

    @classmethod
    def resolve(cls, value: "EndpointClass | str") -> "EndpointClass":
        """Map a raw value onto an endpoint class, falling back to ``READ``.

        Examples:
            >>> EndpointClass.resolve("bulk")
            <EndpointClass.BULK: 'bulk'>
            >>> EndpointClass.resolve("unknown")
            <EndpointClass.READ: 'read'>
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.READ


@dataclass(frozen=True)
class RateLimitPolicy:
    """Sliding-window quota: ``limit`` requests per ``window_seconds``."""

    limit: int
    window_seconds: int

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")


DEFAULT_POLICIES: dict[EndpointClass, RateLimitPolicy] = {
    EndpointClass.READ: RateLimitPolicy(limit=200, window_seconds=3600),
    EndpointClass.WRITE: RateLimitPolicy(limit=50, window_seconds=3600),
    EndpointClass.BULK: RateLimitPolicy(limit=10, window_seconds=3600),
    EndpointClass.ANALYTICS: RateLimitPolicy(limit=100, window_seconds=3600),
    EndpointClass.AUTH: RateLimitPolicy(limit=20, window_seconds=900),
}
