"""Liveness (/health), readiness (/ready), and metrics for load balancers and orchestrators."""
from fastapi import APIRouter, Request, Response
from fastapi.responses import PlainTextResponse

from inventory_api.settings import settings
from inventory_api import metrics as metrics_module

router = APIRouter()


@router.get("/health")
def health():
    """Liveness: API process is up. No dependencies checked."""
    return {"status": "ok"}


@router.get("/ready")
def ready(request: Request, response: Response):
    """
    Readiness: API can serve traffic. With rate limiting on, the limiter's
    expiry sweep must be running; otherwise its store grows without bound.
    """
    out = {"status": "ok", "checks": {}}
    limiter = getattr(request.app.state, "limiter", None)
    if not settings.RATE_LIMIT_ENABLED or limiter is None:
        out["checks"]["rate_limit"] = "disabled"
    elif limiter.running:
        out["checks"]["rate_limit"] = "ok"
    else:
        out["checks"]["rate_limit"] = "sweep not running"
        out["status"] = "degraded"
        response.status_code = 503
    return out


@router.get("/metrics", response_class=PlainTextResponse)
def metrics(request: Request):
    """Prometheus text exposition format: http_requests_total, rate_limit_*, process_uptime_seconds."""
    limiter = getattr(request.app.state, "limiter", None)
    return PlainTextResponse(
        metrics_module.format_prometheus(tracked_keys=len(limiter.store) if limiter else None),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
