"""
Per-client admission control over fixed windows.

Counts live in the shared Redis store when it is reachable. When it is not,
admission is decided by a process-local counter and ``is_store_ready`` reports
False until the store answers again.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class CounterStore(Protocol):
    async def increment(self, key: str, window_seconds: int) -> Tuple[int, int]: ...

    async def ping(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Outcome of one admission check."""

    allowed: bool
    remaining: int
    retry_after_seconds: int
    limit: int
    degraded: bool


class LocalCounterStore:
    """In-process fixed-window counters; accurate only within one process."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}

    async def increment(self, key: str, window_seconds: int) -> Tuple[int, int]:
        # No await between read and write, so this is atomic on the event loop.
        now = self._clock()
        count, window_start = self._windows.get(key, (0, now))
        if now - window_start >= window_seconds:
            count, window_start = 0, now
        count += 1
        self._windows[key] = (count, window_start)
        self._evict_expired(now, window_seconds)
        reset_in = max(1, math.ceil(window_start + window_seconds - now))
        return count, reset_in

    def _evict_expired(self, now: float, window_seconds: int) -> None:
        if len(self._windows) < 1024:
            return
        expired = [
            key
            for key, (_, start) in self._windows.items()
            if now - start >= window_seconds
        ]
        for key in expired:
            del self._windows[key]

    async def ping(self) -> bool:
        return True


class RateLimiterStore:
    """Choose the durable or the local counter on every call."""

    def __init__(
        self,
        *,
        durable: Optional[CounterStore],
        local: Optional[LocalCounterStore] = None,
        requests_per_window: int = 20,
        window_seconds: int = 60,
        store_timeout_seconds: float = 0.5,
        reconnect_backoff_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._durable = durable
        self._local = local or LocalCounterStore(clock=clock)
        self._limit = requests_per_window
        self._window = window_seconds
        self._timeout = store_timeout_seconds
        self._backoff = reconnect_backoff_seconds
        self._clock = clock
        self._store_ready = False
        self._last_failure: Optional[float] = None

    @property
    def is_configured(self) -> bool:
        return self._durable is not None

    @property
    def is_store_ready(self) -> bool:
        """True when the last store interaction succeeded."""
        return self._durable is not None and self._store_ready

    async def check_and_increment(
        self, client_key: str, *, limit: Optional[int] = None
    ) -> RateLimitDecision:
        quota = limit if limit is not None else self._limit
        degraded = True
        counted: Optional[Tuple[int, int]] = None

        if self._should_try_durable():
            try:
                counted = await asyncio.wait_for(
                    self._durable.increment(client_key, self._window),  # type: ignore[union-attr]
                    timeout=self._timeout,
                )
            except _STORE_ERRORS as exc:
                self._mark_unavailable(exc)
            else:
                self._mark_ready()
                degraded = False

        if counted is None:
            counted = await self._local.increment(client_key, self._window)

        count, reset_in = counted
        allowed = count <= quota
        decision = RateLimitDecision(
            allowed=allowed,
            remaining=max(0, quota - count),
            retry_after_seconds=0 if allowed else max(1, reset_in),
            limit=quota,
            degraded=degraded,
        )
        if not allowed:
            logger.info(
                "Rate limit exceeded for %s (%d/%d, retry in %ds, degraded=%s)",
                client_key,
                count,
                quota,
                decision.retry_after_seconds,
                degraded,
            )
        return decision

    async def check_health(self) -> bool:
        """Ping the durable store and refresh readiness."""
        if self._durable is None:
            return False
        try:
            await asyncio.wait_for(self._durable.ping(), timeout=self._timeout)
        except _STORE_ERRORS as exc:
            self._mark_unavailable(exc)
            return False
        self._mark_ready()
        return True

    def _should_try_durable(self) -> bool:
        if self._durable is None:
            return False
        if self._store_ready or self._last_failure is None:
            return True
        return self._clock() - self._last_failure >= self._backoff

    def _mark_ready(self) -> None:
        if not self._store_ready:
            logger.info("Rate limit store reachable; using shared counters.")
        self._store_ready = True
        self._last_failure = None

    def _mark_unavailable(self, exc: BaseException) -> None:
        if self._store_ready or self._last_failure is None:
            logger.warning(
                "Rate limit store unavailable (%s); falling back to local counters.",
                str(exc) or type(exc).__name__,
            )
        self._store_ready = False
        self._last_failure = self._clock()


__all__ = [
    "CounterStore",
    "LocalCounterStore",
    "RateLimitDecision",
    "RateLimiterStore",
]
