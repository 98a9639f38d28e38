"""HTTP middleware for request ID propagation and request context.

The middleware:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for log correlation
- Publishes a RequestDescriptor for services called during the request
- Adds X-Request-ID and X-Request-Duration-ms to the response
- Clears both context values after the request completes

Usage:
    app.middleware("http")(request_context_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from wishlist_api.core.config import settings
from wishlist_api.core.logging import clear_request_id, set_request_id
from wishlist_api.core.request_context import (
    clear_current_request,
    describe_request,
    set_current_request,
)


async def request_context_middleware(request: Request, call_next) -> Response:
    """Set up per-request correlation id and descriptor.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise a new UUID is
    generated.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with request_id and duration
            headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    set_current_request(
        describe_request(request, trust_forwarded_for=settings.rate_limit.trust_forwarded_for)
    )
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()
        clear_current_request()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
