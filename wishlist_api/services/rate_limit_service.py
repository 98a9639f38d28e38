"""Per-client, per-endpoint-class rate limiting for the wishlist API.

Clients are identified by a fingerprint of address, user agent, endpoint
class and (when authenticated) customer id, so quotas for reads and writes
are tracked independently. Each endpoint class has its own sliding window.

Without a request (background jobs, CLI) every check admits and reports the
full quota. When the store is unavailable the service fails open.
"""

from __future__ import annotations

import logging
import time
from typing import Mapping

from wishlist_api.adapters.kv_store.base import Clock, KeyValueStore
from wishlist_api.adapters.rate_limit.base import RateLimitResult
from wishlist_api.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from wishlist_api.core.errors import StoreError
from wishlist_api.core.request_context import RequestDescriptor, get_current_request
from wishlist_api.services.rate_limit_policy import DEFAULT_POLICIES, EndpointClass, RateLimitPolicy
from wishlist_api.utils.fingerprint import build_client_fingerprint, truncate_fingerprint

logger = logging.getLogger(__name__)


class RateLimitService:
    """Sliding-window rate limiter keyed by client fingerprint.

    Args:
        store: Key-value store holding the windows (shared across workers
            when it is Redis).
        policies: Policy per endpoint class; missing classes use the defaults.
        namespace: Prefix for window keys in the store.
        clock: Time source returning UNIX seconds.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        policies: Mapping[EndpointClass, RateLimitPolicy] | None = None,
        namespace: str = "wishlist_rate_limit",
        clock: Clock = time.time,
    ) -> None:
        merged = dict(DEFAULT_POLICIES)
        if policies:
            merged.update(policies)

        self._policies = merged
        self._limiters = {
            endpoint_class: SlidingWindowRateLimiter(
                store,
                limit=policy.limit,
                window_seconds=policy.window_seconds,
                namespace=namespace,
                clock=clock,
            )
            for endpoint_class, policy in merged.items()
        }

    def policy_for(self, endpoint_class: EndpointClass | str) -> RateLimitPolicy:
        return self._policies[EndpointClass.resolve(endpoint_class)]

    def is_allowed(
        self,
        endpoint_class: EndpointClass | str,
        request: RequestDescriptor | None = None,
    ) -> bool:
        """Consume one request from the caller's quota.

        A rejected request does not consume anything.

        Returns:
            True if the request is admitted (always True without a request).
        """
        result = self.check(endpoint_class, request)
        return result is None or result.allowed

    def check(
        self,
        endpoint_class: EndpointClass | str,
        request: RequestDescriptor | None = None,
    ) -> RateLimitResult | None:
        """Consume one request and return the full decision.

        Returns:
            RateLimitResult, or None when there is no request to limit or
            the store failed (the caller should admit in both cases).
        """
        resolved = EndpointClass.resolve(endpoint_class)
        request = request or get_current_request()
        if request is None:
            return None

        fingerprint = build_client_fingerprint(request, resolved.value)
        try:
            result = self._limiters[resolved].consume(fingerprint)
        except StoreError as exc:
            logger.error(
                "rate_limit.store_unavailable",
                extra={
                    "endpoint": resolved.value,
                    "client_key": truncate_fingerprint(fingerprint),
                    "error_code": exc.code,
                },
            )
            return None

        if not result.allowed:
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "endpoint": resolved.value,
                    "client_key": truncate_fingerprint(fingerprint),
                    "client_ip": request.client_address,
                    "user_agent": request.user_agent,
                    "path": request.path,
                    "method": request.method,
                    "retry_after_s": result.retry_after_seconds,
                },
            )
            return result

        logger.debug(
            "rate_limit.allowed",
            extra={
                "endpoint": resolved.value,
                "client_key": truncate_fingerprint(fingerprint),
                "remaining_tokens": result.remaining,
            },
        )
        return result

    def get_rate_limit_state(
        self,
        endpoint_class: EndpointClass | str,
        request: RequestDescriptor | None = None,
    ) -> RateLimitResult | None:
        """Report the caller's budget without consuming anything."""
        resolved = EndpointClass.resolve(endpoint_class)
        request = request or get_current_request()
        if request is None:
            return None

        fingerprint = build_client_fingerprint(request, resolved.value)
        try:
            return self._limiters[resolved].peek(fingerprint)
        except StoreError as exc:
            logger.error(
                "rate_limit.store_unavailable",
                extra={
                    "endpoint": resolved.value,
                    "client_key": truncate_fingerprint(fingerprint),
                    "error_code": exc.code,
                },
            )
            return None

    def get_remaining_tokens(
        self,
        endpoint_class: EndpointClass | str,
        request: RequestDescriptor | None = None,
    ) -> int:
        state = self.get_rate_limit_state(endpoint_class, request)
        if state is None:
            return self.policy_for(endpoint_class).limit
        return state.remaining

    def get_rate_limit_headers(
        self,
        endpoint_class: EndpointClass | str,
        request: RequestDescriptor | None = None,
    ) -> dict[str, str]:
        """Build ``X-RateLimit-*`` headers for the caller (empty without a request)."""
        state = self.get_rate_limit_state(endpoint_class, request)
        if state is None:
            return {}
        return state.as_headers()
