"""Caller's view of their own rate limit bucket. Counts as a request like any other /api call."""
from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(prefix="/api", tags=["rate-limit"])


class RateLimitStatus(BaseModel):
    limited: bool
    key: str | None = None
    limit: int | None = None
    remaining: int | None = None
    reset_at: int | None = None


@router.get("/rate-limit", response_model=RateLimitStatus)
def rate_limit_status(request: Request):
    decision = getattr(request.state, "rate_limit", None)
    if decision is None:
        return RateLimitStatus(limited=False)
    return RateLimitStatus(
        limited=True,
        key=getattr(request.state, "rate_limit_key", None),
        limit=decision.limit,
        remaining=decision.remaining,
        reset_at=decision.reset_at,
    )
