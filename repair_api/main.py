"""
FastAPI application entrypoint for the repair estimate API.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from repair_api.api.admin import router as admin_router
from repair_api.api.routes import health_router
from repair_api.api.routes import router as api_router
from repair_api.core.config import get_settings
from repair_api.core.logging import configure_logging
from repair_api.dependencies import get_redis_counter_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    store = get_redis_counter_store()
    if store is not None:
        await store.close()
        logger.info("Closed rate limit store connections.")


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)
    if not settings.rate_limit.redis_url:
        logger.warning("REDIS_URL not set; rate limiting is process-local only.")

    app = FastAPI(
        title="Repair Estimate API",
        version="0.1.0",
        description="Batch repair and replacement cost estimates for inventoried items.",
        lifespan=_lifespan,
    )
    app.include_router(health_router)
    app.include_router(api_router, prefix="/api")
    app.include_router(admin_router, prefix="/admin")
    return app


app = create_app()

__all__ = ["app", "create_app"]
