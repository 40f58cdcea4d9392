"""Liveness (/health), readiness (/ready), and metrics for load balancers and orchestrators."""
import os

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse

from gatekeep import metrics as metrics_module
from gatekeep.deps import get_store
from gatekeep.settings import settings
from gatekeep.store import StoreHandle

router = APIRouter()


@router.get("/health")
def health():
    """Liveness: API process is up. No dependencies checked."""
    return {"status": "ok"}


@router.get("/ready")
def ready(response: Response, store: StoreHandle = Depends(get_store)):
    """
    Readiness: API can serve traffic. Checks Redis and the content root.
    Redis being unset is fine (rate limiting fails open); configured but unreachable is not.
    Returns 503 if any dependency is down so the orchestrator can stop sending traffic.
    """
    out = {"status": "ok", "checks": {}}
    status = 200

    redis_state = store.ping()
    out["checks"]["redis"] = redis_state
    if redis_state not in ("ok", "not_configured"):
        status = 503

    if os.path.isdir(settings.CONTENT_ROOT):
        out["checks"]["content_root"] = "ok"
    else:
        out["checks"]["content_root"] = "missing"
        status = 503

    if status != 200:
        out["status"] = "degraded"
        response.status_code = status
    return out


@router.get("/metrics", response_class=PlainTextResponse)
def metrics():
    """Prometheus text exposition format: http_requests_total, rate_limit_decisions_total, process_uptime_seconds."""
    return PlainTextResponse(
        metrics_module.format_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
