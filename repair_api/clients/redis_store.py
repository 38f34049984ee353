"""Redis-backed fixed-window counters shared across API processes."""

from __future__ import annotations

from typing import Any, Tuple

import redis.asyncio as redis

KEY_PREFIX = "rate:"

# INCR and EXPIRE run inside one script so concurrent callers, in this or any
# other process, can never observe the same count.
_INCREMENT_SCRIPT = """
local current = redis.call('INCR', KEYS[1])
if current == 1 then
  redis.call('EXPIRE', KEYS[1], ARGV[1])
end
local ttl = redis.call('TTL', KEYS[1])
if ttl < 0 then
  redis.call('EXPIRE', KEYS[1], ARGV[1])
  ttl = tonumber(ARGV[1])
end
return {current, ttl}
"""


class RedisCounterStore:
    """Atomic increment-with-expiry over a Redis connection pool."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float = 0.5) -> "RedisCounterStore":
        """Build a store; no connection is opened until the first command."""
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            health_check_interval=30,
        )
        return cls(client)

    async def increment(self, key: str, window_seconds: int) -> Tuple[int, int]:
        """Count one hit on ``key``; returns ``(count, seconds_until_reset)``."""
        count, ttl = await self._client.eval(
            _INCREMENT_SCRIPT, 1, f"{KEY_PREFIX}{key}", int(window_seconds)
        )
        return int(count), int(ttl)

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def clear(self) -> int:
        """Delete only the keys this limiter created."""
        deleted = 0
        async for batch in _scan_batches(self._client, f"{KEY_PREFIX}*"):
            deleted += await self._client.delete(*batch)
        return deleted

    async def close(self) -> None:
        await self._client.aclose()


async def _scan_batches(client: Any, pattern: str, batch_size: int = 1000):
    cursor = 0
    while True:
        cursor, keys = await client.scan(cursor=cursor, match=pattern, count=batch_size)
        if keys:
            yield keys
        if int(cursor) == 0:
            break


__all__ = ["KEY_PREFIX", "RedisCounterStore"]
