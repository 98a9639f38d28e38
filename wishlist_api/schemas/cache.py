"""Pydantic schemas for the cache administration endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class TtlSettings(BaseModel):
    """Current TTL buckets in seconds."""

    model_config = ConfigDict(populate_by_name=True)

    default: int = Field(..., ge=1, description="Default bucket for ad-hoc entries.")
    customer: int = Field(..., ge=1, description="Bucket for customer wishlist listings.")
    wishlist: int = Field(..., ge=1, description="Bucket for individual wishlists.")
    default_wishlist: int = Field(
        ...,
        ge=1,
        alias="defaultWishlist",
        description="Bucket for a customer's default wishlist.",
    )


class CacheStatisticsResponse(BaseModel):
    """Hit/miss counters since the last clear, plus the active TTL buckets."""

    model_config = ConfigDict(populate_by_name=True)

    hits: int = Field(..., ge=0)
    misses: int = Field(..., ge=0)
    total: int = Field(..., ge=0, description="hits + misses")
    hit_rate: str = Field(
        ...,
        alias="hitRate",
        description="Percentage string rounded to two decimals, e.g. '66.67%'.",
    )
    ttl_settings: TtlSettings = Field(..., alias="ttlSettings")


class TtlUpdateRequest(BaseModel):
    """New TTL buckets; omitted buckets take the value of ``default``."""

    model_config = ConfigDict(populate_by_name=True)

    default: int = Field(..., ge=1)
    customer: int | None = Field(None, ge=1)
    wishlist: int | None = Field(None, ge=1)
    default_wishlist: int | None = Field(None, ge=1, alias="defaultWishlist")


class PerformanceMetricsResponse(BaseModel):
    """Metrics of the most recent call recorded under a label."""

    model_config = ConfigDict(populate_by_name=True)

    label: str
    duration: float = Field(..., description="Duration in milliseconds.")
    memory: int = Field(..., description="Traced allocation delta in bytes.")
    start_time: float = Field(..., alias="startTime", description="UNIX epoch seconds.")
    end_time: float = Field(..., alias="endTime", description="UNIX epoch seconds.")


class CacheActionResponse(BaseModel):
    """Acknowledgement for invalidation and clear operations."""

    status: str = Field("ok")
    scope: str = Field(..., description="What was invalidated, e.g. 'wishlist:abc'.")
