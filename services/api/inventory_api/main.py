import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from inventory_api import metrics
from inventory_api.logging_config import configure_logging
from inventory_api.middleware import RateLimitMiddleware
from inventory_api.rate_limit import RateLimiter, get_key_extractor
from inventory_api.request_context import request_id_ctx
from inventory_api.routers import health
from inventory_api.routers import rate_limit as rate_limit_router
from inventory_api.settings import Settings, settings

configure_logging()
logger = logging.getLogger("inventory")


def build_limiter(cfg: Settings) -> RateLimiter:
    """Limiter from settings. Raises InvalidConfiguration so a bad config stops start-up."""
    return RateLimiter(
        cfg.RATE_LIMIT_WINDOW_MS,
        cfg.RATE_LIMIT_MAX_REQUESTS,
        message=cfg.RATE_LIMIT_MESSAGE,
        key_extractor=get_key_extractor(cfg.RATE_LIMIT_KEY_STRATEGY),
        sweep_interval_seconds=cfg.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
    )


limiter = build_limiter(settings) if settings.RATE_LIMIT_ENABLED else None


@asynccontextmanager
async def lifespan(app: FastAPI):
    if limiter is None:
        logger.info("rate_limit disabled")
        yield
        return
    async with limiter:
        yield


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_ctx.set(request_id)
        response = await call_next(request)
        logger.info(
            "request_id=%s method=%s path=%s status=%s",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
        )
        response.headers["x-request-id"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        metrics.record_request(request.method, request.url.path, response.status_code)
        return response


app = FastAPI(title="Inventory API", lifespan=lifespan)
app.state.limiter = limiter
# add_middleware wraps: last added runs first. Rate limiting sits innermost so 429s are still logged and counted.
if limiter is not None:
    app.add_middleware(RateLimitMiddleware, limiter=limiter, path_prefix=settings.RATE_LIMIT_PATH_PREFIX)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestLogMiddleware)

app.include_router(health.router)
app.include_router(rate_limit_router.router)
