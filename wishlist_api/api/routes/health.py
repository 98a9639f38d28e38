from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from wishlist_api.adapters.kv_store.base import KeyValueStore
from wishlist_api.core.config import settings
from wishlist_api.core.dependencies import get_key_value_store

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
def readiness_check(store: KeyValueStore = Depends(get_key_value_store)) -> JSONResponse:
    """Readiness check: verifies the backing store answers.

    Returns 503 while the store is unreachable so load balancers stop
    routing traffic that would run uncached and unlimited.
    """

    backend = settings.store.backend
    if store.ping():
        return JSONResponse(status_code=200, content={"status": "ok", "store": backend})

    return JSONResponse(
        status_code=503,
        content={"status": "unavailable", "store": backend},
    )
