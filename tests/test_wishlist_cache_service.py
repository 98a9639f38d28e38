"""Tests for the two-tier wishlist cache service."""

from unittest.mock import Mock, patch

import pytest

from wishlist_api.adapters.kv_store.base import KeyValueStore
from wishlist_api.adapters.kv_store.in_memory import InMemoryKeyValueStore
from wishlist_api.core.errors import StoreUnavailableError
from wishlist_api.services.cache_policy import TtlCategory, TtlPolicy
from wishlist_api.services.wishlist_cache_service import WishlistCacheService


@pytest.fixture
def l2(fake_time) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=fake_time)


@pytest.fixture
def cache(l2, fake_time) -> WishlistCacheService:
    return WishlistCacheService(l2, clock=fake_time)


@pytest.fixture
def tiered(l2, fake_time) -> tuple[WishlistCacheService, InMemoryKeyValueStore]:
    l1 = InMemoryKeyValueStore(clock=fake_time)
    return WishlistCacheService(l2, l1_store=l1, l1_ttl_seconds=300, clock=fake_time), l1


def _unavailable() -> StoreUnavailableError:
    return StoreUnavailableError(code="store_unavailable", message="down")


# ==========================================
# GET / SET
# ==========================================


def test_set_then_get_does_not_compute(cache: WishlistCacheService) -> None:
    compute = Mock(return_value="fresh")
    cache.set("k", "stored")

    assert cache.get("k", compute) == "stored"
    compute.assert_not_called()
    assert cache.get_cache_statistics()["hits"] == 1


def test_miss_computes_once_and_stores(cache: WishlistCacheService) -> None:
    compute = Mock(return_value={"id": 1})

    assert cache.get("k", compute) == {"id": 1}
    assert cache.get("k", compute) == {"id": 1}

    compute.assert_called_once()
    stats = cache.get_cache_statistics()
    assert (stats["hits"], stats["misses"], stats["total"]) == (1, 1, 2)
    assert stats["hitRate"] == "50%"


def test_expired_entry_is_recomputed(cache: WishlistCacheService, fake_time) -> None:
    compute = Mock(side_effect=["first", "second"])

    cache.get("k", compute)
    fake_time.advance(3600)

    assert cache.get("k", compute) == "second"
    assert compute.call_count == 2


def test_ttl_category_selects_bucket(cache: WishlistCacheService, l2, fake_time) -> None:
    cache.get("c", lambda: 1, ttl_category=TtlCategory.CUSTOMER)
    cache.set("d", 2)

    assert l2.get("wishlist_cache:c").expires_at == fake_time.current + 1800
    assert l2.get("wishlist_cache:d").expires_at == fake_time.current + 3600


def test_compute_errors_propagate_and_nothing_is_cached(cache: WishlistCacheService) -> None:
    failing = Mock(side_effect=RuntimeError("db down"))

    with pytest.raises(RuntimeError):
        cache.get("k", failing)

    assert cache.get("k", lambda: "ok") == "ok"
    assert cache.get_cache_statistics()["misses"] == 2


def test_cached_none_is_a_hit(cache: WishlistCacheService) -> None:
    compute = Mock(return_value=None)

    assert cache.get("k", compute) is None
    assert cache.get("k", compute) is None
    compute.assert_called_once()


def test_keys_and_tags_are_namespaced(l2, fake_time) -> None:
    cache = WishlistCacheService(l2, namespace="shop1", clock=fake_time)
    cache.set("k", 1, ["t"])

    assert l2.get("shop1:k") is not None
    assert l2.delete_by_tag("shop1:t") == 1


def test_empty_namespace_is_rejected(l2) -> None:
    with pytest.raises(ValueError):
        WishlistCacheService(l2, namespace="")


def test_get_records_metrics_under_key_label(cache: WishlistCacheService) -> None:
    cache.get("wishlist_42", lambda: {"id": "42"})

    metrics = cache.get_performance_metrics("cache_get_wishlist_42")
    assert metrics is not None
    assert set(metrics) == {"duration", "memory", "startTime", "endTime"}
    assert cache.get_performance_metrics("cache_get_unknown") is None


def test_set_and_delete_do_not_touch_counters(cache: WishlistCacheService) -> None:
    cache.set("k", 1)
    cache.delete("k")

    assert cache.get_cache_statistics()["total"] == 0
    assert cache.peek("k") is None


# ==========================================
# TWO TIERS
# ==========================================


def test_writes_go_to_both_tiers(tiered, l2, fake_time) -> None:
    cache, l1 = tiered
    cache.set("k", "v")

    assert l2.get("wishlist_cache:k").expires_at == fake_time.current + 3600
    assert l1.get("wishlist_cache:k").expires_at == fake_time.current + 300


def test_l2_hit_is_promoted_to_l1(tiered, l2, fake_time) -> None:
    cache, l1 = tiered
    l2.set("wishlist_cache:k", "v", tags=["wishlist_cache:t"], ttl_seconds=100)

    assert cache.get("k", Mock()) == "v"

    promoted = l1.get("wishlist_cache:k")
    assert promoted.value == "v"
    assert promoted.tags == frozenset({"wishlist_cache:t"})
    assert promoted.expires_at == fake_time.current + 100


def test_l1_serves_when_l2_is_down(fake_time) -> None:
    l2 = Mock(spec=KeyValueStore)
    l1 = InMemoryKeyValueStore(clock=fake_time)
    cache = WishlistCacheService(l2, l1_store=l1, clock=fake_time)
    l1.set("wishlist_cache:k", "v", ttl_seconds=60)

    assert cache.get("k", Mock()) == "v"
    l2.get.assert_not_called()


# ==========================================
# STORE FAILURES
# ==========================================


def test_read_failure_is_treated_as_miss(fake_time) -> None:
    store = Mock(spec=KeyValueStore)
    store.get.side_effect = _unavailable()
    store.set.side_effect = _unavailable()
    cache = WishlistCacheService(store, clock=fake_time)

    assert cache.get("k", lambda: "computed") == "computed"
    assert cache.get_cache_statistics()["misses"] == 1


def test_write_failure_is_swallowed(fake_time) -> None:
    store = Mock(spec=KeyValueStore)
    store.set.side_effect = _unavailable()
    cache = WishlistCacheService(store, clock=fake_time)

    cache.set("k", "v")
    cache.cache_wishlist("1", {"id": "1"})

    assert store.set.call_count == 2


def test_failed_write_evicts_superseded_l1_value(fake_time) -> None:
    l1 = InMemoryKeyValueStore(clock=fake_time)
    l2 = InMemoryKeyValueStore(clock=fake_time)
    cache = WishlistCacheService(l2, l1_store=l1, clock=fake_time)
    cache.set("k", "v1")

    with patch.object(l2, "set", side_effect=_unavailable()):
        cache.set("k", "v2")

    assert l1.get(cache.namespace + ":k") is None


def test_failed_write_with_l2_down_does_not_serve_stale_l1(fake_time) -> None:
    l1 = InMemoryKeyValueStore(clock=fake_time)
    l2 = Mock(spec=KeyValueStore)
    l2.get.return_value = None
    cache = WishlistCacheService(l2, l1_store=l1, clock=fake_time)
    cache.set("k", "v1")

    l2.set.side_effect = _unavailable()
    cache.set("k", "v2")

    assert cache.get("k", lambda: "v2") == "v2"


# ==========================================
# WISHLIST / CUSTOMER
# ==========================================


def test_invalidate_wishlist_forces_recompute(cache: WishlistCacheService) -> None:
    cache.cache_wishlist("42", {"id": "42"})
    cache.set("wishlist_items_42", ["a"])
    cache.set("wishlist_share_42", {"token": "x"})
    cache.set("wishlist_summary", "kept", ["wishlist_42"])
    cache.set("wishlist_43", {"id": "43"})

    cache.invalidate_wishlist_cache("42")

    compute = Mock(return_value={"id": "42", "fresh": True})
    assert cache.get("wishlist_42", compute) == {"id": "42", "fresh": True}
    compute.assert_called_once()
    assert cache.peek("wishlist_items_42") is None
    assert cache.peek("wishlist_share_42") is None
    assert cache.peek("wishlist_summary") is None
    assert cache.peek("wishlist_43") == {"id": "43"}


def test_invalidate_wishlist_clears_both_tiers(tiered) -> None:
    cache, l1 = tiered
    cache.cache_wishlist("1", {"id": "1"})

    cache.invalidate_wishlist_cache("1")

    assert l1.get("wishlist_cache:wishlist_1") is None
    assert cache.peek("wishlist_1") is None


def test_customer_helpers_and_invalidation(cache: WishlistCacheService, l2, fake_time) -> None:
    cache.cache_customer("c1", [{"id": "w1"}])
    cache.cache_default_wishlist("c1", {"id": "w1", "isDefault": True})
    cache.set("customer_wishlist_stats_c1", {"count": 1})

    assert l2.get("wishlist_cache:customer_wishlists_c1").expires_at == fake_time.current + 1800
    assert (
        l2.get("wishlist_cache:customer_default_wishlist_c1").expires_at
        == fake_time.current + 1800
    )

    cache.invalidate_customer_cache("c1")

    assert cache.peek("customer_wishlists_c1") is None
    assert cache.peek("customer_default_wishlist_c1") is None
    assert cache.peek("customer_wishlist_stats_c1") is None


def test_default_wishlist_is_dropped_with_its_wishlist(cache: WishlistCacheService) -> None:
    cache.cache_default_wishlist("c1", {"id": "w1"})

    cache.invalidate_wishlist_cache("w1")

    assert cache.peek("customer_default_wishlist_c1") is None


def test_get_cached_helpers_use_buckets(cache: WishlistCacheService, l2, fake_time) -> None:
    cache.get_cached_wishlist("w1", lambda: {"id": "w1"})
    cache.get_cached_customer_wishlists("c1", lambda: [])
    cache.get_cached_default_wishlist("c1", lambda: {"id": "w1"})

    assert l2.get("wishlist_cache:wishlist_w1").expires_at == fake_time.current + 3600
    assert l2.get("wishlist_cache:customer_wishlists_c1").expires_at == fake_time.current + 1800
    assert cache.get_cache_statistics()["misses"] == 3

    cache.invalidate_customer_cache("c1")
    assert cache.peek("customer_wishlists_c1") is None
    assert cache.peek("wishlist_w1") == {"id": "w1"}


def test_warm_up_customer_cache(cache: WishlistCacheService) -> None:
    wishlists = [
        {"id": "w1", "isDefault": False},
        {"id": "w2", "isDefault": True},
    ]

    cache.warm_up_customer_cache("c1", wishlists)

    assert cache.peek("customer_wishlists_c1") == wishlists
    assert cache.peek("wishlist_w1") == wishlists[0]
    assert cache.peek("customer_default_wishlist_c1") == wishlists[1]
    assert cache.get_performance_metrics("warm_up_cache_c1") is not None
    assert cache.get_cache_statistics()["total"] == 0


# ==========================================
# PRICES
# ==========================================


def test_price_cache_round_trip_without_counters(cache: WishlistCacheService, l2, fake_time) -> None:
    cached = cache.cache_price_data(["p1", "p2", "p3"], {"p1": 9.99, "p2": 5.0})

    assert cached == 2
    assert cache.get_cached_price_data("p1") == 9.99
    assert cache.get_cached_price_data("p3") is None
    assert l2.get("wishlist_cache:product_price_p1").expires_at == fake_time.current + 900
    assert cache.get_cache_statistics()["total"] == 0


def test_invalidate_price_cache_per_product(cache: WishlistCacheService) -> None:
    cache.cache_price_data(["p1", "p2"], {"p1": 1, "p2": 2})

    cache.invalidate_price_cache(["p1"])

    assert cache.get_cached_price_data("p1") is None
    assert cache.get_cached_price_data("p2") == 2


def test_invalidate_price_cache_all(cache: WishlistCacheService) -> None:
    cache.cache_price_data(["p1", "p2"], {"p1": 1, "p2": 2})

    cache.invalidate_price_cache()

    assert cache.get_cached_price_data("p1") is None
    assert cache.get_cached_price_data("p2") is None


def test_batch_cache_wishlist_item_prices(cache: WishlistCacheService, l2, fake_time) -> None:
    item = Mock(product_id="p2")
    items = [{"productId": "p1"}, item, {"productId": "missing"}, {"name": "no id"}]

    cached = cache.batch_cache_wishlist_item_prices(items, {"p1": 1.5, "p2": 2.5})

    assert cached == 2
    assert cache.peek("wishlist_item_price_p1") == 1.5
    assert l2.get("wishlist_cache:wishlist_item_price_p2").expires_at == fake_time.current + 600

    cache.invalidate_price_cache(["p1"])
    assert cache.peek("wishlist_item_price_p1") is None


# ==========================================
# ADMINISTRATION
# ==========================================


def test_clear_all_cache_resets_everything(cache: WishlistCacheService, l2) -> None:
    cache.get("a", lambda: 1)
    cache.get("a", lambda: 1)
    l2.set("other_app:k", "keep", ttl_seconds=60)

    cache.clear_all_cache()

    stats = cache.get_cache_statistics()
    assert (stats["hits"], stats["misses"], stats["hitRate"]) == (0, 0, "0%")
    assert cache.get_performance_metrics("cache_get_a") is None
    compute = Mock(return_value=2)
    assert cache.get("a", compute) == 2
    compute.assert_called_once()
    assert l2.get("other_app:k") is not None


def test_clear_all_cache_flushes_l1(tiered) -> None:
    cache, l1 = tiered
    cache.set("k", 1)

    cache.clear_all_cache()

    assert len(l1) == 0


def test_set_cache_ttl_defaults_omitted_buckets(cache: WishlistCacheService, l2, fake_time) -> None:
    cache.set_cache_ttl(600, wishlist=7200)

    assert cache.get_cache_statistics()["ttlSettings"] == {
        "default": 600,
        "customer": 600,
        "wishlist": 7200,
        "defaultWishlist": 600,
    }
    cache.cache_wishlist("w1", {})
    assert l2.get("wishlist_cache:wishlist_w1").expires_at == fake_time.current + 7200


def test_set_cache_ttl_rejects_invalid_values(cache: WishlistCacheService) -> None:
    with pytest.raises(ValueError):
        cache.set_cache_ttl(0)

    assert cache.ttl_policy == TtlPolicy()


def test_default_ttl_settings(cache: WishlistCacheService) -> None:
    assert cache.get_cache_statistics()["ttlSettings"] == {
        "default": 3600,
        "customer": 1800,
        "wishlist": 3600,
        "defaultWishlist": 1800,
    }
