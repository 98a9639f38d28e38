"""Tests for client fingerprinting."""

from hashlib import sha256

from wishlist_api.core.request_context import RequestDescriptor
from wishlist_api.utils.fingerprint import build_client_fingerprint, truncate_fingerprint


def _descriptor(**overrides) -> RequestDescriptor:
    fields = {
        "client_address": "1.2.3.4",
        "user_agent": "Mozilla/5.0",
        "path": "/store-api/wishlist",
        "method": "GET",
    }
    fields.update(overrides)
    return RequestDescriptor(**fields)


def test_fingerprint_is_sha256_of_factors() -> None:
    fingerprint = build_client_fingerprint(_descriptor(), "read")

    assert fingerprint == sha256(b"1.2.3.4:Mozilla/5.0:read").hexdigest()
    assert len(fingerprint) == 64


def test_customer_id_is_appended_when_present() -> None:
    fingerprint = build_client_fingerprint(_descriptor(customer_id="c1"), "read")

    assert fingerprint == sha256(b"1.2.3.4:Mozilla/5.0:read:c1").hexdigest()


def test_missing_user_agent_uses_placeholder() -> None:
    fingerprint = build_client_fingerprint(_descriptor(user_agent=None), "write")

    assert fingerprint == sha256(b"1.2.3.4:unknown:write").hexdigest()


def test_fingerprint_depends_on_each_factor() -> None:
    base = build_client_fingerprint(_descriptor(), "read")

    assert base == build_client_fingerprint(_descriptor(path="/other", method="POST"), "read")
    assert base != build_client_fingerprint(_descriptor(client_address="5.6.7.8"), "read")
    assert base != build_client_fingerprint(_descriptor(user_agent="curl"), "read")
    assert base != build_client_fingerprint(_descriptor(), "write")


def test_truncate_fingerprint() -> None:
    assert truncate_fingerprint("abcdef0123456789") == "abcdef01..."
