"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build a fresh app after changing settings.
"""

from __future__ import annotations

import logging
import tracemalloc

from fastapi import FastAPI

from wishlist_api.api.routes import cache_router, health_router, rate_limit_router
from wishlist_api.core.config import settings
from wishlist_api.core.exception_handlers import setup_exception_handlers
from wishlist_api.core.logging import configure_logging
from wishlist_api.core.middleware import request_context_middleware
from wishlist_api.core.openapi import apply_openapi_customizations
from wishlist_api.core.rate_limit import rate_limit_middleware

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    if settings.cache.trace_memory and not tracemalloc.is_tracing():
        tracemalloc.start()

    app = FastAPI(
        title="Wishlist Cache API",
        description=(
            "Caching and rate limiting layer of the wishlist service: tag-aware "
            "two-tier cache with TTL buckets and statistics, and per-client "
            "sliding-window quotas per endpoint class."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    # Last registered runs first: request context wraps rate limiting.
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_context_middleware)

    setup_exception_handlers(app)

    app.include_router(cache_router)
    app.include_router(rate_limit_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "app_env": settings.app_env,
            "store_backend": settings.store.backend,
            "rate_limit_enabled": settings.rate_limit.enabled,
        },
    )
    return app
