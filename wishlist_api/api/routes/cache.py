"""Operational endpoints for the wishlist cache.

Every route requires ``X-API-Key``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from wishlist_api.core.auth import verify_api_key
from wishlist_api.core.dependencies import get_cache_service
from wishlist_api.core.errors import NotFoundAppError
from wishlist_api.schemas.cache import (
    CacheActionResponse,
    CacheStatisticsResponse,
    PerformanceMetricsResponse,
    TtlUpdateRequest,
)
from wishlist_api.services.wishlist_cache_service import WishlistCacheService

router = APIRouter(
    prefix="/admin/cache",
    tags=["Cache"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("/statistics", response_model=CacheStatisticsResponse)
def get_statistics(
    cache: WishlistCacheService = Depends(get_cache_service),
) -> CacheStatisticsResponse:
    """Hit/miss counters since the last clear and the active TTL buckets."""

    return CacheStatisticsResponse.model_validate(cache.get_cache_statistics())


@router.put("/ttl", response_model=CacheStatisticsResponse)
def update_ttl(
    payload: TtlUpdateRequest,
    cache: WishlistCacheService = Depends(get_cache_service),
) -> CacheStatisticsResponse:
    """Replace the TTL buckets. Existing entries keep their expiry."""

    cache.set_cache_ttl(
        payload.default,
        customer=payload.customer,
        wishlist=payload.wishlist,
        default_wishlist=payload.default_wishlist,
    )
    return CacheStatisticsResponse.model_validate(cache.get_cache_statistics())


@router.get("/metrics/{label}", response_model=PerformanceMetricsResponse)
def get_metrics(
    label: str,
    cache: WishlistCacheService = Depends(get_cache_service),
) -> PerformanceMetricsResponse:
    """Metrics of the latest call recorded under ``label`` (e.g. ``cache_get_wishlist_1``)."""

    metrics = cache.get_performance_metrics(label)
    if metrics is None:
        raise NotFoundAppError(
            code="metrics_not_found",
            message=f"No performance metrics recorded for '{label}'",
            details={"label": label},
        )
    return PerformanceMetricsResponse.model_validate({"label": label, **metrics})


@router.post("/clear", response_model=CacheActionResponse)
def clear_cache(
    cache: WishlistCacheService = Depends(get_cache_service),
) -> CacheActionResponse:
    cache.clear_all_cache()
    return CacheActionResponse(scope=f"namespace:{cache.namespace}")


@router.post("/wishlists/{wishlist_id}/invalidate", response_model=CacheActionResponse)
def invalidate_wishlist(
    wishlist_id: str,
    cache: WishlistCacheService = Depends(get_cache_service),
) -> CacheActionResponse:
    cache.invalidate_wishlist_cache(wishlist_id)
    return CacheActionResponse(scope=f"wishlist:{wishlist_id}")


@router.post("/customers/{customer_id}/invalidate", response_model=CacheActionResponse)
def invalidate_customer(
    customer_id: str,
    cache: WishlistCacheService = Depends(get_cache_service),
) -> CacheActionResponse:
    cache.invalidate_customer_cache(customer_id)
    return CacheActionResponse(scope=f"customer:{customer_id}")


@router.post("/prices/invalidate", response_model=CacheActionResponse)
def invalidate_prices(
    product_ids: list[str] | None = Query(None, alias="product_id"),
    cache: WishlistCacheService = Depends(get_cache_service),
) -> CacheActionResponse:
    """Invalidate cached prices for the given products, or all prices."""

    cache.invalidate_price_cache(product_ids)
    scope = "prices:all" if not product_ids else f"prices:{','.join(product_ids)}"
    return CacheActionResponse(scope=scope)
