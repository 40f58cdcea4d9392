"""Request-scoped dependencies: the shared store handle, the admission controller, rate-limit enforcement."""
import logging

from fastapi import Depends, HTTPException, Request

from gatekeep import metrics
from gatekeep.rate_limit import (
    AdmissionController,
    RateLimitPolicy,
    RateLimitResult,
    client_identity,
    rate_limit_key,
)
from gatekeep.settings import settings
from gatekeep.store import StoreHandle

logger = logging.getLogger("gatekeep.rate_limit")

# One handle per process; closed from the app lifespan.
store = StoreHandle(settings.REDIS_URL, socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS)


def get_store() -> StoreHandle:
    return store


def get_admission_controller(store_handle: StoreHandle = Depends(get_store)) -> AdmissionController:
    return AdmissionController(store_handle)


def enforce_rate_limit(
    request: Request,
    controller: AdmissionController,
    scope: str,
    policy: RateLimitPolicy,
) -> RateLimitResult:
    """Admit the caller under scope or raise 429 with Retry-After and X-RateLimit-* headers."""
    peer = request.client.host if request.client else None
    identity = client_identity(request.headers, peer=peer)
    result = controller.check_and_record(rate_limit_key(scope, identity), policy)
    metrics.record_rate_limit(scope, result.admitted, result.degraded)
    if not result.admitted:
        logger.warning(
            "rate_limited scope=%s client=%s limit=%s window=%s",
            scope,
            identity,
            policy.max_requests,
            policy.window_seconds,
        )
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Try again later.",
            headers=result.headers(),
        )
    return result
