from __future__ import annotations

from wishlist_api.api.routes.cache import router as cache_router
from wishlist_api.api.routes.health import router as health_router
from wishlist_api.api.routes.rate_limit import router as rate_limit_router

__all__ = ["cache_router", "health_router", "rate_limit_router"]
