"""Read-only request descriptor and the per-request context that holds it.

Services never see Starlette objects. The HTTP middleware converts the
incoming request into a :class:`RequestDescriptor` and stores it in a context
variable, so code that runs outside a request (background jobs, CLI) simply
finds no descriptor.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass

from starlette.requests import Request

_current_request_var: ContextVar["RequestDescriptor | None"] = ContextVar(
    "current_request", default=None
)


@dataclass(frozen=True)
class RequestDescriptor:
    """Attributes of an inbound request relevant to rate limiting."""

    client_address: str
    user_agent: str | None
    path: str
    method: str
    customer_id: str | None = None


def describe_request(request: Request, *, trust_forwarded_for: bool = False) -> RequestDescriptor:
    """Build a descriptor from a Starlette/FastAPI request.

    The authenticated customer id is read from ``request.state.customer_id``,
    which upstream authentication is expected to set.

    Args:
        request: Incoming request.
        trust_forwarded_for: Use the first ``X-Forwarded-For`` hop as client
            address (only behind a trusted proxy).

    Returns:
        RequestDescriptor for the request.
    """

    client_address = request.client.host if request.client else "unknown"
    if trust_forwarded_for:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            client_address = forwarded_for.split(",")[0].strip() or client_address

    customer_id = getattr(request.state, "customer_id", None)

    return RequestDescriptor(
        client_address=client_address,
        user_agent=request.headers.get("User-Agent"),
        path=request.url.path,
        method=request.method.upper(),
        customer_id=str(customer_id) if customer_id else None,
    )


def set_current_request(descriptor: RequestDescriptor | None) -> None:
    _current_request_var.set(descriptor)


def get_current_request() -> RequestDescriptor | None:
    """Return the descriptor of the request being handled, if any."""

    return _current_request_var.get()


def clear_current_request() -> None:
    _current_request_var.set(None)
