"""Fixtures shared across the estimate API test suite."""

import fakeredis
import pytest


@pytest.fixture
def anyio_backend() -> str:
    """Endpoint tests drive the ASGI app on asyncio only."""
    return "asyncio"


@pytest.fixture
def redis_client():
    """An in-memory Redis with Lua support, private to one test."""
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
