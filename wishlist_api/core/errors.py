"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what applies to it.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    limit: int
    remaining: int
    reset: int
    endpoint_class: str
    backend: str
    operation: str
    key: str
    label: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class NotFoundAppError(AppError):
    """Raised when a requested resource (e.g. a metrics label) does not exist."""


class RateLimitExceededAppError(AppError):
    """Raised when a client has exhausted its quota for an endpoint class.

    ``details`` carries ``limit``, ``remaining``, ``reset`` and
    ``retry_after`` so the HTTP layer can emit the standard headers.
    """


class StoreError(AppError):
    """Base error for key-value store failures."""


class StoreUnavailableError(StoreError):
    """Raised when the backing key-value store cannot be reached."""


class CacheSerializationError(StoreError):
    """Raised when a value cannot be encoded for a networked store."""
