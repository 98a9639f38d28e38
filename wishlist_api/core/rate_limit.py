"""Rate limiting for the HTTP layer.

This module wires :class:`RateLimitService` into FastAPI in two ways:
- ``rate_limit_middleware`` classifies every request by path and method and
  rejects it with 429 once the caller's quota for that class is exhausted.
- ``enforce_rate_limit(endpoint_class)`` is a route dependency for handlers
  that need an explicit class regardless of their path.

Paths that do not belong to the wishlist API pass through untouched.

The client is described from the live request at check time, so a
``request.state.customer_id`` set by an outer authentication middleware (for
the middleware) or by an earlier route dependency (for ``enforce_rate_limit``)
becomes part of the fingerprint. The store round trip runs in the threadpool.
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from wishlist_api.adapters.rate_limit.base import RateLimitResult
from wishlist_api.core.config import settings
from wishlist_api.core.dependencies import get_rate_limit_service
from wishlist_api.core.errors import RateLimitExceededAppError
from wishlist_api.core.request_context import describe_request
from wishlist_api.services.rate_limit_policy import EndpointClass

logger = logging.getLogger(__name__)

_API_PREFIX = r"^(?:/store-api)?(?:/v\d+)?"

# Most specific first: the first matching pattern wins.
ENDPOINT_PATTERNS: list[tuple[re.Pattern[str], EndpointClass]] = [
    (re.compile(_API_PREFIX + r"/wishlist/.+/bulk(?:/.*)?$"), EndpointClass.BULK),
    (re.compile(_API_PREFIX + r"/wishlist/bulk/?$"), EndpointClass.BULK),
    (re.compile(_API_PREFIX + r"/wishlist/.+/analytics(?:/.*)?$"), EndpointClass.ANALYTICS),
    (re.compile(_API_PREFIX + r"/wishlist/.+/items(?:/.*)?$"), EndpointClass.WRITE),
    (re.compile(_API_PREFIX + r"/wishlist(?:/.*)?$"), EndpointClass.READ),
    (re.compile(_API_PREFIX + r"/auth(?:/.*)?$"), EndpointClass.AUTH),
]

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

RATE_LIMIT_DETAIL = "Too many requests. Please try again later."


def classify_endpoint(path: str, method: str) -> EndpointClass | None:
    """Map a request path and method onto an endpoint class.

    Mutating methods turn a read classification into a write.

    Examples:
        >>> classify_endpoint("/store-api/wishlist/abc/bulk", "POST")
        <EndpointClass.BULK: 'bulk'>
        >>> classify_endpoint("/store-api/v2/wishlist", "POST")
        <EndpointClass.WRITE: 'write'>
        >>> classify_endpoint("/health", "GET") is None
        True
    """
    for pattern, endpoint_class in ENDPOINT_PATTERNS:
        if pattern.search(path):
            if endpoint_class is EndpointClass.READ and method.upper() in WRITE_METHODS:
                return EndpointClass.WRITE
            return endpoint_class
    return None


def _rate_limit_headers(result: RateLimitResult, *, blocked: bool) -> dict[str, str]:
    headers: dict[str, str] = {}
    if settings.rate_limit.include_headers:
        headers.update(result.as_headers())
    if blocked:
        headers["Retry-After"] = str(result.retry_after_seconds or 1)
    return headers


def build_rate_limit_response(result: RateLimitResult) -> JSONResponse:
    """Render the 429 response for a rejected request."""

    return JSONResponse(
        status_code=429,
        content={
            "errors": [
                {
                    "code": "RATE_LIMIT_EXCEEDED",
                    "title": "Rate Limit Exceeded",
                    "detail": RATE_LIMIT_DETAIL,
                    "meta": {
                        "limit": result.limit,
                        "remaining": result.remaining,
                        "reset": result.reset_at,
                    },
                }
            ]
        },
        headers=_rate_limit_headers(result, blocked=True),
    )


async def rate_limit_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """HTTP middleware enforcing per-class quotas on wishlist endpoints.

    Args:
        request: The incoming HTTP request.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: 429 when the quota is exhausted, otherwise the downstream
            response with ``X-RateLimit-*`` headers added.
    """

    if not settings.rate_limit.enabled:
        return await call_next(request)

    endpoint_class = classify_endpoint(request.url.path, request.method)
    if endpoint_class is None:
        return await call_next(request)

    descriptor = describe_request(
        request, trust_forwarded_for=settings.rate_limit.trust_forwarded_for
    )
    result = await run_in_threadpool(get_rate_limit_service().check, endpoint_class, descriptor)

    if result is not None and not result.allowed:
        return build_rate_limit_response(result)

    response = await call_next(request)
    if result is not None:
        for name, value in _rate_limit_headers(result, blocked=False).items():
            response.headers.setdefault(name, value)
    return response


def enforce_rate_limit(endpoint_class: EndpointClass | str) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency consuming one request of ``endpoint_class``.

    Usage:
        @router.post("/export", dependencies=[Depends(enforce_rate_limit("bulk"))])

    Raises:
        RateLimitExceededAppError: When the caller's quota is exhausted
            (rendered as 429 by the exception handlers).
    """

    resolved = EndpointClass.resolve(endpoint_class)

    async def dependency(request: Request) -> None:
        if not settings.rate_limit.enabled:
            return

        descriptor = describe_request(
            request, trust_forwarded_for=settings.rate_limit.trust_forwarded_for
        )
        result = await run_in_threadpool(get_rate_limit_service().check, resolved, descriptor)
        if result is None or result.allowed:
            return

        raise RateLimitExceededAppError(
            code="rate_limit_exceeded",
            message=RATE_LIMIT_DETAIL,
            details={
                "endpoint_class": resolved.value,
                "limit": result.limit,
                "remaining": result.remaining,
                "reset": result.reset_at,
                "retry_after": result.retry_after_seconds or 1,
            },
        )

    return dependency
