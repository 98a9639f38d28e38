"""Pydantic schemas for the rate limit status endpoint."""

from pydantic import BaseModel, Field


class EndpointQuota(BaseModel):
    """Caller's current budget for one endpoint class."""

    endpoint_class: str = Field(..., description="read, write, bulk, analytics or auth.")
    limit: int = Field(..., ge=1)
    window_seconds: int = Field(..., ge=1)
    remaining: int = Field(..., ge=0)
    reset: int | None = Field(
        None,
        description="UNIX epoch second when the oldest admission leaves the window.",
    )


class RateLimitStatusResponse(BaseModel):
    """Budgets of the calling client across all endpoint classes."""

    enabled: bool
    quotas: list[EndpointQuota]
