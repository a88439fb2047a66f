"""In-memory rate limiting by key (e.g. client address). Fixed window per key; not distributed.

Each RateLimiter owns its own store, so two limiters (say one per protected
route prefix) never share buckets. A background sweep drops records whose
window has lapsed; start it with ``await limiter.start()`` (or ``async with
limiter``) and stop it on shutdown.
"""
import asyncio
import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from inventory_api import metrics
from inventory_api.client_keys import KEY_STRATEGIES, UNKNOWN_KEY, client_address

logger = logging.getLogger("inventory.ratelimit")

DEFAULT_MESSAGE = "Too many requests, please try again later."


class InvalidConfiguration(ValueError):
    """Limiter options that can never work (non-positive window or ceiling)."""


def get_key_extractor(name: str) -> Callable:
    """Key strategy by configuration name: address, forwarded or address_route."""
    extractor = KEY_STRATEGIES.get(name.strip().lower())
    if extractor is None:
        raise InvalidConfiguration(f"key strategy must be one of {sorted(KEY_STRATEGIES)}, got {name!r}")
    return extractor


def _now_ms() -> float:
    return time.time() * 1000.0


@dataclass
class RateRecord:
    key: str
    count: int
    window_reset_at: float  # epoch ms

    def is_expired(self, now: float) -> bool:
        # The reset instant itself already belongs to the next window.
        return now >= self.window_reset_at


@dataclass(frozen=True)
class Decision:
    admitted: bool
    limit: int
    remaining: int
    reset_at: int  # epoch seconds
    retry_after: int | None = None

    def headers(self) -> dict[str, str]:
        out = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if self.retry_after is not None:
            out["Retry-After"] = str(self.retry_after)
        return out


class RateLimiterStore:
    """
    key -> RateRecord guarded by ``lock``. Public methods take the lock themselves;
    the underscored ones expect the caller to hold it.
    """

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self._records: dict[str, RateRecord] = {}

    def _get(self, key: str) -> RateRecord | None:
        return self._records.get(key)

    def _put(self, record: RateRecord) -> None:
        self._records[record.key] = record

    def get(self, key: str) -> RateRecord | None:
        with self.lock:
            return self._get(key)

    def put(self, record: RateRecord) -> None:
        with self.lock:
            self._put(record)

    def keys(self) -> list[str]:
        with self.lock:
            return list(self._records)

    def __len__(self) -> int:
        with self.lock:
            return len(self._records)

    def discard_expired(self, now: float) -> int:
        """Remove records whose window lapsed at ``now``. Returns how many were removed."""
        removed = 0
        for key in self.keys():
            with self.lock:
                # Re-read under the lock: check() may have started a fresh window meanwhile.
                record = self._get(key)
                if record is not None and record.is_expired(now):
                    del self._records[key]
                    removed += 1
        return removed

    def clear(self) -> None:
        with self.lock:
            self._records.clear()


def _require_positive_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConfiguration(f"{name} must be a positive integer, got {value!r}")
    return value


class RateLimiter:
    def __init__(
        self,
        window_ms: int,
        max_requests: int,
        *,
        message: str = DEFAULT_MESSAGE,
        key_extractor: Callable | None = None,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = _now_ms,
    ):
        self.window_ms = _require_positive_int("window_ms", window_ms)
        self.max_requests = _require_positive_int("max_requests", max_requests)
        if (
            isinstance(sweep_interval_seconds, bool)
            or not isinstance(sweep_interval_seconds, (int, float))
            or sweep_interval_seconds <= 0
        ):
            raise InvalidConfiguration(
                f"sweep_interval_seconds must be positive, got {sweep_interval_seconds!r}"
            )
        self.message = message or DEFAULT_MESSAGE
        self.key_extractor = key_extractor or client_address
        self.sweep_interval_seconds = float(sweep_interval_seconds)
        self._clock = clock
        self.store = RateLimiterStore()
        self._sweep_task: asyncio.Task | None = None

    def check(self, key: str) -> Decision:
        """
        Record one request for key and decide whether it is admitted.
        Every call counts, rejected ones included, so call it exactly once per request.
        """
        key = key or UNKNOWN_KEY
        with self.store.lock:
            now = self._clock()
            record = self.store._get(key)
            if record is None or record.is_expired(now):
                record = RateRecord(key=key, count=0, window_reset_at=now + self.window_ms)
                self.store._put(record)
            record.count += 1
            count = record.count
            reset_at_ms = record.window_reset_at

        reset_at = math.ceil(reset_at_ms / 1000)
        if count > self.max_requests:
            return Decision(
                admitted=False,
                limit=self.max_requests,
                remaining=0,
                reset_at=reset_at,
                retry_after=math.ceil((reset_at_ms - now) / 1000),
            )
        return Decision(
            admitted=True,
            limit=self.max_requests,
            remaining=self.max_requests - count,
            reset_at=reset_at,
        )

    def sweep(self) -> int:
        """Drop every record whose window has passed. Returns the number dropped."""
        removed = self.store.discard_expired(self._clock())
        if removed:
            logger.debug("rate_limit_sweep removed=%s remaining_keys=%s", removed, len(self.store))
        return removed

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                metrics.record_sweep(self.sweep())
            except Exception as e:
                logger.exception("rate_limit_sweep failed: %s", e)

    async def start(self) -> None:
        """Schedule the periodic sweep on the running event loop."""
        if self.running:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(
            "rate_limit started window_ms=%s max=%s sweep_interval=%ss",
            self.window_ms,
            self.max_requests,
            self.sweep_interval_seconds,
        )

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish. Safe to call twice."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            # Re-raise when the caller itself was cancelled.
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        logger.info("rate_limit stopped")

    async def __aenter__(self) -> "RateLimiter":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()
