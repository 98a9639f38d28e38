"""Client fingerprints used as rate limit keys."""

from __future__ import annotations

from hashlib import sha256

from wishlist_api.core.request_context import RequestDescriptor

UNKNOWN_USER_AGENT = "unknown"


def build_client_fingerprint(request: RequestDescriptor, endpoint_class: str) -> str:
    """Build a stable, non-reversible fingerprint for a client.

    The digest covers client address, user agent, endpoint class and, when
    the request is authenticated, the customer id.

    Args:
        request: Descriptor of the inbound request.
        endpoint_class: Endpoint class the quota applies to.

    Returns:
        Hex-encoded SHA-256 digest string.
    """

    factors = [
        request.client_address,
        request.user_agent or UNKNOWN_USER_AGENT,
        endpoint_class,
    ]
    if request.customer_id:
        factors.append(request.customer_id)

    return sha256(":".join(factors).encode()).hexdigest()


def truncate_fingerprint(fingerprint: str, length: int = 8) -> str:
    """Shorten a fingerprint for logs (``abcd1234...``)."""

    return f"{fingerprint[:length]}..."
