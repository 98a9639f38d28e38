"""Tests for settings groups and their derived policies."""

import pytest
from pydantic import ValidationError

from wishlist_api.core.config import CacheSettings, RateLimitSettings, StoreSettings
from wishlist_api.services.cache_policy import TtlCategory, TtlPolicy
from wishlist_api.services.rate_limit_policy import DEFAULT_POLICIES, EndpointClass, RateLimitPolicy


def test_default_rate_limit_policies_match_table() -> None:
    assert RateLimitSettings().policies() == DEFAULT_POLICIES
    assert DEFAULT_POLICIES[EndpointClass.AUTH] == RateLimitPolicy(limit=20, window_seconds=900)


def test_rate_limit_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_WRITE_LIMIT", "5")
    monkeypatch.setenv("RATE_LIMIT_WRITE_WINDOW_SECONDS", "60")

    policies = RateLimitSettings().policies()

    assert policies[EndpointClass.WRITE] == RateLimitPolicy(limit=5, window_seconds=60)
    assert policies[EndpointClass.READ].limit == 200


def test_cache_settings_build_ttl_policy(monkeypatch) -> None:
    monkeypatch.setenv("CACHE_TTL_CUSTOMER", "60")

    policy = CacheSettings().ttl_policy()

    assert policy.ttl_for(TtlCategory.CUSTOMER) == 60
    assert policy.ttl_for(TtlCategory.DEFAULT) == 3600


def test_invalid_values_are_rejected(monkeypatch) -> None:
    monkeypatch.setenv("CACHE_TTL_DEFAULT", "0")
    with pytest.raises(ValidationError):
        CacheSettings()

    monkeypatch.setenv("STORE_BACKEND", "memcached")
    with pytest.raises(ValidationError):
        StoreSettings()


def test_ttl_policy_validation() -> None:
    with pytest.raises(ValueError):
        TtlPolicy(customer=0)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("bulk", EndpointClass.BULK),
        ("WRITE", EndpointClass.WRITE),
        (EndpointClass.AUTH, EndpointClass.AUTH),
        ("unknown", EndpointClass.READ),
        ("", EndpointClass.READ),
    ],
)
def test_endpoint_class_resolve(raw, expected) -> None:
    assert EndpointClass.resolve(raw) is expected


def test_rate_limit_policy_validation() -> None:
    with pytest.raises(ValueError):
        RateLimitPolicy(limit=0, window_seconds=60)
