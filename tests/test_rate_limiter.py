try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from repair_api.services.rate_limiter import LocalCounterStore, RateLimiterStore


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SharedCounterStore:
    """Behaves like the Redis script: increment and expiry in one step."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.counts: dict[str, tuple[int, float]] = {}
        self.available = True
        self.calls = 0

    async def increment(self, key: str, window_seconds: int) -> tuple[int, int]:
        self.calls += 1
        # Yield first so concurrent callers genuinely interleave.
        await asyncio.sleep(0)
        if not self.available:
            raise RedisConnectionError("Connection refused")
        count, expires_at = self.counts.get(key, (0, 0.0))
        if self._clock() >= expires_at:
            count, expires_at = 0, self._clock() + window_seconds
        count += 1
        self.counts[key] = (count, expires_at)
        return count, int(expires_at - self._clock())

    async def ping(self) -> bool:
        if not self.available:
            raise RedisConnectionError("Connection refused")
        return True


class HangingStore:
    async def increment(self, key: str, window_seconds: int) -> tuple[int, int]:
        await asyncio.sleep(10)
        raise AssertionError("should have timed out")

    async def ping(self) -> bool:
        await asyncio.sleep(10)
        return True


@pytest.mark.asyncio
async def test_concurrent_requests_admit_exactly_the_quota() -> None:
    clock = FakeClock()
    limiter = RateLimiterStore(
        durable=SharedCounterStore(clock), requests_per_window=5, clock=clock
    )

    decisions = await asyncio.gather(
        *(limiter.check_and_increment("apiKey:abc") for _ in range(6))
    )

    assert sum(1 for decision in decisions if decision.allowed) == 5
    rejected = [decision for decision in decisions if not decision.allowed]
    assert len(rejected) == 1
    assert rejected[0].retry_after_seconds >= 1
    assert all(not decision.degraded for decision in decisions)
    assert limiter.is_store_ready is True


@pytest.mark.asyncio
async def test_two_limiters_share_one_budget_through_the_store() -> None:
    clock = FakeClock()
    store = SharedCounterStore(clock)
    first = RateLimiterStore(durable=store, requests_per_window=3, clock=clock)
    second = RateLimiterStore(durable=store, requests_per_window=3, clock=clock)

    results = [
        await first.check_and_increment("apiKey:abc"),
        await second.check_and_increment("apiKey:abc"),
        await first.check_and_increment("apiKey:abc"),
        await second.check_and_increment("apiKey:abc"),
    ]

    assert [result.allowed for result in results] == [True, True, True, False]


@pytest.mark.asyncio
async def test_clients_are_counted_independently() -> None:
    limiter = RateLimiterStore(durable=None, requests_per_window=1)

    assert (await limiter.check_and_increment("apiKey:one")).allowed is True
    assert (await limiter.check_and_increment("apiKey:two")).allowed is True
    assert (await limiter.check_and_increment("apiKey:one")).allowed is False


@pytest.mark.asyncio
async def test_falls_back_to_local_counter_and_recovers() -> None:
    clock = FakeClock()
    store = SharedCounterStore(clock)
    store.available = False
    limiter = RateLimiterStore(durable=store, requests_per_window=2, clock=clock)

    decision = await limiter.check_and_increment("apiKey:abc")
    assert decision.allowed is True
    assert decision.degraded is True
    assert limiter.is_store_ready is False

    await limiter.check_and_increment("apiKey:abc")
    blocked = await limiter.check_and_increment("apiKey:abc")
    assert blocked.allowed is False
    assert blocked.degraded is True

    store.available = True
    recovered = await limiter.check_and_increment("apiKey:abc")
    assert recovered.allowed is True
    assert recovered.degraded is False
    assert limiter.is_store_ready is True


@pytest.mark.asyncio
async def test_slow_store_is_treated_as_unavailable() -> None:
    limiter = RateLimiterStore(
        durable=HangingStore(), requests_per_window=2, store_timeout_seconds=0.01
    )

    decision = await limiter.check_and_increment("apiKey:abc")

    assert decision.allowed is True
    assert decision.degraded is True
    assert limiter.is_store_ready is False
    assert await limiter.check_health() is False


@pytest.mark.asyncio
async def test_reconnect_backoff_skips_the_store() -> None:
    clock = FakeClock()
    store = SharedCounterStore(clock)
    store.available = False
    limiter = RateLimiterStore(
        durable=store,
        requests_per_window=10,
        reconnect_backoff_seconds=30,
        clock=clock,
    )

    await limiter.check_and_increment("apiKey:abc")
    await limiter.check_and_increment("apiKey:abc")
    assert store.calls == 1

    store.available = True
    clock.advance(31)
    decision = await limiter.check_and_increment("apiKey:abc")
    assert store.calls == 2
    assert decision.degraded is False


@pytest.mark.asyncio
async def test_per_call_limit_overrides_default() -> None:
    limiter = RateLimiterStore(durable=None, requests_per_window=1)

    first = await limiter.check_and_increment("apiKey:premium", limit=3)
    await limiter.check_and_increment("apiKey:premium", limit=3)
    third = await limiter.check_and_increment("apiKey:premium", limit=3)
    fourth = await limiter.check_and_increment("apiKey:premium", limit=3)

    assert first.limit == 3
    assert first.remaining == 2
    assert third.allowed is True
    assert fourth.allowed is False


@pytest.mark.asyncio
async def test_zero_per_call_limit_is_not_replaced_by_default() -> None:
    limiter = RateLimiterStore(durable=None, requests_per_window=5)

    decision = await limiter.check_and_increment("apiKey:frozen", limit=0)

    assert decision.limit == 0
    assert decision.allowed is False
    assert decision.retry_after_seconds >= 1


@pytest.mark.asyncio
async def test_check_health_reports_store_health() -> None:
    clock = FakeClock()
    store = SharedCounterStore(clock)
    limiter = RateLimiterStore(durable=store, clock=clock)

    assert limiter.is_store_ready is False
    assert await limiter.check_health() is True
    assert limiter.is_store_ready is True

    store.available = False
    assert await limiter.check_health() is False
    assert limiter.is_store_ready is False


@pytest.mark.asyncio
async def test_unconfigured_limiter_is_never_ready() -> None:
    limiter = RateLimiterStore(durable=None)

    decision = await limiter.check_and_increment("apiKey:abc")

    assert limiter.is_configured is False
    assert decision.degraded is True
    assert await limiter.check_health() is False


@pytest.mark.asyncio
async def test_local_window_resets_after_expiry() -> None:
    clock = FakeClock()
    local = LocalCounterStore(clock=clock)

    assert await local.increment("k", 60) == (1, 60)
    clock.advance(20)
    assert await local.increment("k", 60) == (2, 40)
    clock.advance(40)
    assert await local.increment("k", 60) == (1, 60)


@pytest.mark.asyncio
async def test_local_store_evicts_expired_windows() -> None:
    clock = FakeClock()
    local = LocalCounterStore(clock=clock)

    for index in range(1024):
        await local.increment(f"client-{index}", 10)
    clock.advance(11)
    await local.increment("fresh", 10)

    assert len(local._windows) == 1
