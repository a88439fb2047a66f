"""Prometheus-style metrics: in-memory counters updated by middleware and the limiter sweep."""
from collections import defaultdict
import time

# (method, path_template, status_class) -> count. path_template normalizes path (e.g. /api/items/7 -> /api/items/{id}).
_request_counts: dict[tuple[str, str, str], int] = defaultdict(int)
# "admitted" | "rejected" -> count
_rate_limit_decisions: dict[str, int] = defaultdict(int)
_swept_records = 0
_start_time = time.monotonic()


def record_request(method: str, path: str, status_code: int) -> None:
    """Call from middleware after each request."""
    # Normalize path: non-alpha segments (IDs, slugs) -> {id} to limit cardinality
    parts = path.strip("/").split("/")
    normalized = [p if p and p.replace("-", "").isalpha() else "{id}" for p in parts]
    path_template = "/" + "/".join(normalized) if path.strip("/") else "/"
    status_class = f"{status_code // 100}xx"
    _request_counts[(method, path_template, status_class)] += 1


def record_rate_limit(admitted: bool) -> None:
    _rate_limit_decisions["admitted" if admitted else "rejected"] += 1


def record_sweep(removed: int) -> None:
    global _swept_records
    _swept_records += removed


def get_request_counts() -> dict[tuple[str, str, str], int]:
    return dict(_request_counts)


def get_rate_limit_decisions() -> dict[str, int]:
    return dict(_rate_limit_decisions)


def get_swept_records() -> int:
    return _swept_records


def get_uptime_seconds() -> float:
    return time.monotonic() - _start_time


def reset() -> None:
    """Zero all counters (tests)."""
    global _swept_records
    _request_counts.clear()
    _rate_limit_decisions.clear()
    _swept_records = 0


def format_prometheus(tracked_keys: int | None = None) -> str:
    """Render metrics in Prometheus text exposition format."""
    lines = [
        "# HELP http_requests_total Total HTTP requests by method, path, status class.",
        "# TYPE http_requests_total counter",
    ]
    for (method, path, status_class), count in sorted(get_request_counts().items()):
        labels = f'method="{method}",path="{path}",status="{status_class}"'
        lines.append(f"http_requests_total{{{labels}}} {count}")
    lines.append("")
    lines.extend([
        "# HELP rate_limit_decisions_total Rate limiter decisions by outcome.",
        "# TYPE rate_limit_decisions_total counter",
    ])
    decisions = get_rate_limit_decisions()
    for outcome in ("admitted", "rejected"):
        lines.append(f'rate_limit_decisions_total{{outcome="{outcome}"}} {decisions.get(outcome, 0)}')
    lines.extend([
        "",
        "# HELP rate_limit_swept_records_total Expired limiter records removed by the background sweep.",
        "# TYPE rate_limit_swept_records_total counter",
        f"rate_limit_swept_records_total {get_swept_records()}",
    ])
    if tracked_keys is not None:
        lines.extend([
            "",
            "# HELP rate_limit_tracked_keys Keys currently held by the rate limiter store.",
            "# TYPE rate_limit_tracked_keys gauge",
            f"rate_limit_tracked_keys {tracked_keys}",
        ])
    lines.extend([
        "",
        "# HELP process_uptime_seconds Process uptime in seconds.",
        "# TYPE process_uptime_seconds gauge",
        f"process_uptime_seconds {get_uptime_seconds():.2f}",
    ])
    return "\n".join(lines) + "\n"
