"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_api_key_service,
    get_api_key_store,
    get_estimate_orchestrator,
    get_gemini_client,
    get_item_estimator,
    get_rate_limiter,
    get_redis_counter_store,
    get_web_search_client,
)
from .config import get_app_settings, get_estimator_settings, get_rate_limit_settings

__all__ = [
    "get_api_key_service",
    "get_api_key_store",
    "get_app_settings",
    "get_estimate_orchestrator",
    "get_estimator_settings",
    "get_gemini_client",
    "get_item_estimator",
    "get_rate_limit_settings",
    "get_rate_limiter",
    "get_redis_counter_store",
    "get_web_search_client",
]
