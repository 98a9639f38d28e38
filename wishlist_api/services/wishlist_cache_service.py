"""Two-tier wishlist cache with TTL buckets, tag invalidation and statistics.

The service sits in front of expensive wishlist reads. It handles:
- Get-or-compute lookups (L1 process memory, then the shared L2 store)
- Per-category TTL buckets applied when entries are written
- Tag invalidation for a wishlist, a customer, or product prices
- Hit/miss counters and per-operation timing/memory metrics

Caching is best-effort: store failures on read behave like misses and store
failures on write are logged and dropped, so callers keep working when the
store is down. There is no cross-request locking; concurrent misses for the
same key each run their compute function.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from wishlist_api.adapters.kv_store.base import CacheEntry, Clock, KeyValueStore
from wishlist_api.core.errors import StoreError
from wishlist_api.services.cache_policy import TtlCategory, TtlPolicy
from wishlist_api.services.cache_statistics import CacheStatistics

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRICE_TTL_SECONDS = 900
ITEM_PRICE_TTL_SECONDS = 600
PRICES_TAG = "prices"
WISHLIST_PRICES_TAG = "wishlist-prices"


def wishlist_key(wishlist_id: str) -> str:
    return f"wishlist_{wishlist_id}"


def wishlist_tag(wishlist_id: str) -> str:
    return f"wishlist_{wishlist_id}"


def customer_tag(customer_id: str) -> str:
    return f"customer_{customer_id}"


def product_tag(product_id: str) -> str:
    return f"product_{product_id}"


def customer_wishlists_key(customer_id: str) -> str:
    return f"customer_wishlists_{customer_id}"


def customer_default_wishlist_key(customer_id: str) -> str:
    return f"customer_default_wishlist_{customer_id}"


def product_price_key(product_id: str) -> str:
    return f"product_price_{product_id}"


class WishlistCacheService:
    """Get-or-compute cache for wishlist data.

    Args:
        store: Shared (L2) key-value store.
        l1_store: Optional process-local tier checked before ``store``.
        ttl_policy: Initial TTL buckets.
        namespace: Prefix for every key and tag this service writes; only
            this namespace is flushed by :meth:`clear_all_cache`.
        l1_ttl_seconds: Upper bound for L1 entry lifetime.
        max_tracked_operations: Bound on retained performance metric labels.
        clock: Time source for metrics timestamps.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        l1_store: KeyValueStore | None = None,
        ttl_policy: TtlPolicy | None = None,
        namespace: str = "wishlist_cache",
        l1_ttl_seconds: int = 300,
        max_tracked_operations: int = 1000,
        clock: Clock = time.time,
    ) -> None:
        if not namespace:
            raise ValueError("namespace must be a non-empty string")

        self._store = store
        self._l1 = l1_store
        self._ttl_policy = ttl_policy or TtlPolicy()
        self._namespace = namespace
        self._l1_ttl = l1_ttl_seconds
        self._clock = clock
        self._stats = CacheStatistics(max_operations=max_tracked_operations, clock=clock)

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def ttl_policy(self) -> TtlPolicy:
        return self._ttl_policy

    @property
    def statistics(self) -> CacheStatistics:
        return self._stats

    # ==========================================
    # CORE OPERATIONS
    # ==========================================

    def get(
        self,
        key: str,
        compute_fn: Callable[[], T],
        *,
        tags: Iterable[str] = (),
        ttl_category: TtlCategory = TtlCategory.DEFAULT,
    ) -> T:
        """Return the cached value for ``key`` or compute and cache it.

        Metrics for the whole call, compute included, are recorded under
        ``cache_get_{key}``.

        Args:
            key: Cache key (without namespace).
            compute_fn: Zero-argument callable producing the value on a miss.
            tags: Tags attached to a freshly computed entry.
            ttl_category: TTL bucket applied to a freshly computed entry.

        Returns:
            The cached or freshly computed value.

        Raises:
            Exception: Whatever ``compute_fn`` raises; nothing is cached then.
        """
        timer = self._stats.start(f"cache_get_{key}")
        store_key = self._store_key(key)

        entry = self._lookup(store_key)
        if entry is not None:
            self._stats.record_hit()
            self._stats.finish(timer)
            return entry.value

        self._stats.record_miss()
        logger.debug("cache.miss", extra={"cache_key": key})

        value = compute_fn()
        self._write(store_key, value, tags, self._ttl_policy.ttl_for(ttl_category))

        metrics = self._stats.finish(timer)
        logger.debug(
            "cache.computed",
            extra={"cache_key": key, "duration_ms": metrics.duration, "memory": metrics.memory},
        )
        return value

    def set(
        self,
        key: str,
        value: Any,
        tags: Iterable[str] = (),
        ttl_category: TtlCategory = TtlCategory.DEFAULT,
        *,
        ttl_seconds: int | None = None,
    ) -> None:
        """Store ``value`` under ``key`` unconditionally.

        ``ttl_seconds`` overrides the bucket for ad-hoc entries such as prices.
        """
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl_policy.ttl_for(ttl_category)
        self._write(self._store_key(key), value, tags, ttl)

    def delete(self, key: str) -> None:
        """Remove ``key`` from both tiers."""
        store_key = self._store_key(key)
        if self._l1 is not None:
            self._l1.delete(store_key)
        try:
            self._store.delete(store_key)
        except StoreError as exc:
            logger.warning("cache.delete_failed", extra={"cache_key": key, "error_code": exc.code})

    def peek(self, key: str) -> Any | None:
        """Return the live value for ``key`` without computing or counting."""
        entry = self._lookup(self._store_key(key))
        return entry.value if entry is not None else None

    # ==========================================
    # WISHLIST / CUSTOMER HELPERS
    # ==========================================

    def cache_wishlist(self, wishlist_id: str, data: Any) -> None:
        self.set(
            wishlist_key(wishlist_id),
            data,
            [wishlist_tag(wishlist_id)],
            TtlCategory.WISHLIST,
        )

    def cache_customer(self, customer_id: str, wishlists: Any) -> None:
        """Cache the wishlist listing of a customer."""
        self.set(
            customer_wishlists_key(customer_id),
            wishlists,
            [customer_tag(customer_id)],
            TtlCategory.CUSTOMER,
        )

    def cache_default_wishlist(self, customer_id: str, wishlist: Mapping[str, Any]) -> None:
        tags = [customer_tag(customer_id)]
        if wishlist.get("id"):
            tags.append(wishlist_tag(str(wishlist["id"])))
        self.set(
            customer_default_wishlist_key(customer_id),
            wishlist,
            tags,
            TtlCategory.DEFAULT_WISHLIST,
        )

    def get_cached_wishlist(self, wishlist_id: str, compute_fn: Callable[[], T]) -> T:
        return self.get(
            wishlist_key(wishlist_id),
            compute_fn,
            tags=[wishlist_tag(wishlist_id)],
            ttl_category=TtlCategory.WISHLIST,
        )

    def get_cached_customer_wishlists(self, customer_id: str, compute_fn: Callable[[], T]) -> T:
        return self.get(
            customer_wishlists_key(customer_id),
            compute_fn,
            tags=[customer_tag(customer_id)],
            ttl_category=TtlCategory.CUSTOMER,
        )

    def get_cached_default_wishlist(self, customer_id: str, compute_fn: Callable[[], T]) -> T:
        return self.get(
            customer_default_wishlist_key(customer_id),
            compute_fn,
            tags=[customer_tag(customer_id)],
            ttl_category=TtlCategory.DEFAULT_WISHLIST,
        )

    def invalidate_wishlist_cache(self, wishlist_id: str) -> None:
        """Drop everything tagged with the wishlist plus its well-known keys."""
        timer = self._stats.start(f"invalidate_wishlist_{wishlist_id}")
        self._invalidate(
            wishlist_tag(wishlist_id),
            [
                wishlist_key(wishlist_id),
                f"wishlist_items_{wishlist_id}",
                f"wishlist_share_{wishlist_id}",
            ],
        )
        metrics = self._stats.finish(timer)
        logger.debug(
            "cache.wishlist_invalidated",
            extra={"wishlist_id": wishlist_id, "duration_ms": metrics.duration},
        )

    def invalidate_customer_cache(self, customer_id: str) -> None:
        """Drop everything tagged with the customer plus its well-known keys."""
        timer = self._stats.start(f"invalidate_customer_{customer_id}")
        self._invalidate(
            customer_tag(customer_id),
            [
                customer_wishlists_key(customer_id),
                customer_default_wishlist_key(customer_id),
                f"customer_wishlist_stats_{customer_id}",
            ],
        )
        metrics = self._stats.finish(timer)
        logger.debug(
            "cache.customer_invalidated",
            extra={"customer_id": customer_id, "duration_ms": metrics.duration},
        )

    def warm_up_customer_cache(self, customer_id: str, wishlists: Sequence[Mapping[str, Any]]) -> None:
        """Prime the listing, each wishlist and the default wishlist."""
        timer = self._stats.start(f"warm_up_cache_{customer_id}")

        self.cache_customer(customer_id, list(wishlists))
        for wishlist in wishlists:
            self.cache_wishlist(str(wishlist["id"]), wishlist)

        default = next((w for w in wishlists if w.get("isDefault")), None)
        if default is not None:
            self.cache_default_wishlist(customer_id, default)

        metrics = self._stats.finish(timer)
        logger.info(
            "cache.customer_warmed_up",
            extra={
                "customer_id": customer_id,
                "wishlist_count": len(wishlists),
                "duration_ms": metrics.duration,
                "memory": metrics.memory,
            },
        )

    # ==========================================
    # PRICE CACHE
    # ==========================================

    def cache_price_data(
        self,
        product_ids: Iterable[str],
        price_data: Mapping[str, Any],
        ttl_seconds: int = PRICE_TTL_SECONDS,
    ) -> int:
        """Cache prices for the given products that have an entry in ``price_data``."""
        cached = 0
        for product_id in product_ids:
            if product_id not in price_data:
                continue
            self.set(
                product_price_key(product_id),
                price_data[product_id],
                [product_tag(product_id), PRICES_TAG],
                ttl_seconds=ttl_seconds,
            )
            cached += 1

        logger.debug("cache.prices_cached", extra={"cached_prices": cached, "ttl_s": ttl_seconds})
        return cached

    def get_cached_price_data(self, product_id: str) -> Any | None:
        return self.peek(product_price_key(product_id))

    def invalidate_price_cache(self, product_ids: Iterable[str] | None = None) -> None:
        """Invalidate all prices, or only those of ``product_ids``."""
        ids = list(product_ids or [])
        if not ids:
            self._invalidate(PRICES_TAG, [])
            logger.info("cache.prices_invalidated", extra={"scope": "all"})
            return

        for product_id in ids:
            self._invalidate(product_tag(product_id), [product_price_key(product_id)])
        logger.debug("cache.prices_invalidated", extra={"scope": "products", "product_count": len(ids)})

    def batch_cache_wishlist_item_prices(
        self,
        items: Iterable[Any],
        price_data: Mapping[str, Any],
    ) -> int:
        """Cache prices of wishlist items; items are mappings or objects with ``product_id``."""
        started = time.perf_counter()
        cached = 0

        for item in items:
            if isinstance(item, Mapping):
                product_id = item.get("productId") or item.get("product_id")
            else:
                product_id = getattr(item, "product_id", None)
            if product_id is None or product_id not in price_data:
                continue

            self.set(
                f"wishlist_item_price_{product_id}",
                price_data[product_id],
                [product_tag(product_id), WISHLIST_PRICES_TAG],
                ttl_seconds=ITEM_PRICE_TTL_SECONDS,
            )
            cached += 1

        logger.debug(
            "cache.item_prices_cached",
            extra={"cached": cached, "duration_ms": round((time.perf_counter() - started) * 1000, 2)},
        )
        return cached

    # ==========================================
    # ADMINISTRATION & STATISTICS
    # ==========================================

    def clear_all_cache(self) -> None:
        """Flush this service's namespace in both tiers and reset statistics."""
        timer = self._stats.start("clear_all_cache")

        removed = 0
        if self._l1 is not None:
            self._l1.delete_all(self._namespace)
        try:
            removed = self._store.delete_all(self._namespace)
        except StoreError as exc:
            logger.error("cache.clear_failed", extra={"namespace": self._namespace, "error_code": exc.code})

        metrics = timer.stop()
        self._stats.reset()
        logger.info(
            "cache.cleared",
            extra={"namespace": self._namespace, "removed": removed, "duration_ms": metrics.duration},
        )

    def set_cache_ttl(
        self,
        default: int,
        customer: int | None = None,
        wishlist: int | None = None,
        default_wishlist: int | None = None,
    ) -> None:
        """Replace the TTL buckets; entries already stored keep their expiry.

        Raises:
            ValueError: If any TTL is below one second.
        """
        self._ttl_policy = self._ttl_policy.with_overrides(default, customer, wishlist, default_wishlist)
        logger.info("cache.ttl_updated", extra=self._ttl_policy.as_dict())

    def get_cache_statistics(self) -> dict[str, Any]:
        return {
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "total": self._stats.total,
            "hitRate": self._stats.hit_rate,
            "ttlSettings": self._ttl_policy.as_dict(),
        }

    def get_performance_metrics(self, label: str) -> dict[str, Any] | None:
        metrics = self._stats.metrics_for(label)
        return metrics.as_dict() if metrics is not None else None

    # ==========================================
    # INTERNALS
    # ==========================================

    def _store_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _lookup(self, store_key: str) -> CacheEntry | None:
        if self._l1 is not None:
            entry = self._l1.get(store_key)
            if entry is not None:
                logger.debug("cache.hit", extra={"cache_key": store_key, "tier": "l1"})
                return entry

        try:
            entry = self._store.get(store_key)
        except StoreError as exc:
            logger.warning(
                "cache.read_failed",
                extra={"cache_key": store_key, "error_code": exc.code},
            )
            return None

        if entry is None:
            return None

        logger.debug("cache.hit", extra={"cache_key": store_key, "tier": "l2"})
        if self._l1 is not None:
            remaining = entry.ttl_remaining(self._clock())
            if remaining > 0:
                self._l1.set(
                    store_key,
                    entry.value,
                    tags=entry.tags,
                    ttl_seconds=min(remaining, self._l1_ttl),
                )
        return entry

    def _write(self, store_key: str, value: Any, tags: Iterable[str], ttl_seconds: int) -> None:
        namespaced_tags = [self._store_key(tag) for tag in tags]

        try:
            self._store.set(store_key, value, tags=namespaced_tags, ttl_seconds=ttl_seconds)
        except StoreError as exc:
            logger.warning(
                "cache.write_failed",
                extra={"cache_key": store_key, "error_code": exc.code},
            )
            # The L1 copy, if any, is now superseded
            if self._l1 is not None:
                self._l1.delete(store_key)
            return

        if self._l1 is not None:
            self._l1.set(
                store_key,
                value,
                tags=namespaced_tags,
                ttl_seconds=min(ttl_seconds, self._l1_ttl),
            )
        logger.debug("cache.set", extra={"cache_key": store_key, "ttl_s": ttl_seconds})

    def _invalidate(self, tag: str, keys: Iterable[str]) -> None:
        namespaced_tag = self._store_key(tag)
        store_keys = [self._store_key(key) for key in keys]

        if self._l1 is not None:
            self._l1.delete_by_tag(namespaced_tag)
            for store_key in store_keys:
                self._l1.delete(store_key)

        try:
            self._store.delete_by_tag(namespaced_tag)
            for store_key in store_keys:
                self._store.delete(store_key)
        except StoreError as exc:
            logger.error(
                "cache.invalidation_failed",
                extra={"tag": namespaced_tag, "error_code": exc.code},
            )
