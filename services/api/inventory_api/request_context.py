"""Context vars for request-scoped data (e.g. request_id) so the rate limiter and handlers can log it."""
from contextvars import ContextVar

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
