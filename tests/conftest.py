"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import that might build settings.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from wishlist_api.core import dependencies
from wishlist_api.core.request_context import clear_current_request


class FakeTime:
    """Deterministic clock used to test expiration and window logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture(autouse=True)
def _fresh_services():
    """Rebuild process-wide services and drop request context per test."""
    dependencies.reset_services()
    clear_current_request()
    yield
    dependencies.reset_services()
    clear_current_request()
