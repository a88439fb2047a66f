"""Rate limit gate in front of request handling: one limiter.check() per request, 429 on rejection."""
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.status import HTTP_429_TOO_MANY_REQUESTS

from inventory_api import metrics
from inventory_api.client_keys import UNKNOWN_KEY
from inventory_api.rate_limit import RateLimiter
from inventory_api.request_context import request_id_ctx

logger = logging.getLogger("inventory.ratelimit")


def _under_prefix(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Paths outside path_prefix pass through untouched and do not count.
    Admitted requests carry the Decision on request.state.rate_limit.
    """

    def __init__(self, app, limiter: RateLimiter, path_prefix: str = ""):
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next):
        if not _under_prefix(request.url.path, self.path_prefix):
            return await call_next(request)

        key = self.limiter.key_extractor(request) or UNKNOWN_KEY
        decision = self.limiter.check(key)
        metrics.record_rate_limit(decision.admitted)

        if not decision.admitted:
            logger.info(
                "rate_limited key=%s path=%s retry_after=%s request_id=%s",
                key,
                request.url.path,
                decision.retry_after,
                request_id_ctx.get(""),
            )
            return JSONResponse(
                status_code=HTTP_429_TOO_MANY_REQUESTS,
                content={"message": self.limiter.message},
                headers=decision.headers(),
            )

        request.state.rate_limit = decision
        request.state.rate_limit_key = key
        response = await call_next(request)
        response.headers.update(decision.headers())
        return response
