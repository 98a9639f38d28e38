"""TTL buckets for the wishlist cache."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum


class TtlCategory(str, Enum):
    """Semantic categories of cached data, each with its own TTL."""

    DEFAULT = "default"
    CUSTOMER = "customer"
    WISHLIST = "wishlist"
    DEFAULT_WISHLIST = "default_wishlist"


@dataclass(frozen=True)
class TtlPolicy:
    """Time-to-live in seconds per :class:`TtlCategory`.

    Instances are immutable; the cache service swaps the whole policy when
    TTLs are changed at runtime so entries already stored keep their expiry.
    """

    default: int = 3600
    customer: int = 1800
    wishlist: int = 3600
    default_wishlist: int = 1800

    def __post_init__(self) -> None:
        for name, value in asdict(self).items():
            if value < 1:
                raise ValueError(f"TTL '{name}' must be >= 1 second")

    def ttl_for(self, category: TtlCategory) -> int:
        return getattr(self, category.value)

    def with_overrides(
        self,
        default: int,
        customer: int | None = None,
        wishlist: int | None = None,
        default_wishlist: int | None = None,
    ) -> "TtlPolicy":
        """Return a new policy; omitted buckets fall back to ``default``."""
        return replace(
            self,
            default=default,
            customer=customer if customer is not None else default,
            wishlist=wishlist if wishlist is not None else default,
            default_wishlist=default_wishlist if default_wishlist is not None else default,
        )

    def as_dict(self) -> dict[str, int]:
        """Camel-cased view used in statistics payloads."""
        return {
            "default": self.default,
            "customer": self.customer,
            "wishlist": self.wishlist,
            "defaultWishlist": self.default_wishlist,
        }
