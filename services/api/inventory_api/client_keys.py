"""How to identify a caller for rate limiting. Each strategy maps a request to a bucket key."""
from collections.abc import Callable

from starlette.requests import Request

UNKNOWN_KEY = "unknown"


def client_address(request: Request) -> str:
    """Peer address of the connection. Default strategy: one bucket per address."""
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_KEY


def forwarded_address(request: Request) -> str:
    """First hop of X-Forwarded-For; only meaningful behind a proxy that sets it."""
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    return forwarded or client_address(request)


def address_and_route(request: Request) -> str:
    return f"{client_address(request)}:{request.url.path}"


KEY_STRATEGIES: dict[str, Callable[[Request], str]] = {
    "address": client_address,
    "forwarded": forwarded_address,
    "address_route": address_and_route,
}
