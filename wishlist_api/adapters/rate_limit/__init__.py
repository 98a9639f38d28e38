"""Rate limiting adapters.

This package keeps the windowing algorithm behind a small interface so the
service layer and the HTTP layer only ever see ``RateLimitResult``.
"""

from wishlist_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from wishlist_api.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "RateLimitResult",
    "SlidingWindowRateLimiter",
]
