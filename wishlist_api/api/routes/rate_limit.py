from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from wishlist_api.core.auth import verify_api_key
from wishlist_api.core.config import settings
from wishlist_api.core.dependencies import get_rate_limit_service
from wishlist_api.core.request_context import describe_request
from wishlist_api.schemas.rate_limit import EndpointQuota, RateLimitStatusResponse
from wishlist_api.services.rate_limit_policy import EndpointClass
from wishlist_api.services.rate_limit_service import RateLimitService

router = APIRouter(tags=["Rate Limit"], dependencies=[Depends(verify_api_key)])


@router.get("/rate-limit/status", response_model=RateLimitStatusResponse)
def rate_limit_status(
    request: Request,
    service: RateLimitService = Depends(get_rate_limit_service),
) -> RateLimitStatusResponse:
    """Report the caller's remaining budget per endpoint class.

    Nothing is consumed; the quotas are those of the client making this call.
    """

    descriptor = describe_request(
        request, trust_forwarded_for=settings.rate_limit.trust_forwarded_for
    )

    quotas = []
    for endpoint_class in EndpointClass:
        policy = service.policy_for(endpoint_class)
        state = service.get_rate_limit_state(endpoint_class, descriptor)
        used = state is not None and state.remaining < state.limit
        quotas.append(
            EndpointQuota(
                endpoint_class=endpoint_class.value,
                limit=policy.limit,
                window_seconds=policy.window_seconds,
                remaining=state.remaining if state is not None else policy.limit,
                reset=state.reset_at if used else None,
            )
        )

    return RateLimitStatusResponse(enabled=settings.rate_limit.enabled, quotas=quotas)
