"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from repair_api.clients import (
    GeminiClient,
    RedisCounterStore,
    SQLiteApiKeyStore,
    WebSearchClient,
)
from repair_api.core.config import get_settings
from repair_api.services import (
    ApiKeyService,
    EstimateOrchestrator,
    ItemEstimator,
    RateLimiterStore,
    build_research_tools,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_gemini_client() -> GeminiClient:
    """Provide Gemini client instance."""
    settings = _settings()
    return GeminiClient(settings.gemini)


@lru_cache()
def get_web_search_client() -> WebSearchClient | None:
    """Provide web search client when SerpAPI is configured."""
    settings = _settings()
    api_key = settings.serpapi_api_key
    if not api_key:
        return None
    return WebSearchClient(api_key=api_key)


@lru_cache()
def get_redis_counter_store() -> RedisCounterStore | None:
    """Provide the shared counter store when REDIS_URL is configured."""
    settings = _settings()
    if not settings.rate_limit.redis_url:
        return None
    return RedisCounterStore.from_url(
        settings.rate_limit.redis_url,
        timeout_seconds=settings.rate_limit.store_timeout_seconds,
    )


@lru_cache()
def get_rate_limiter() -> RateLimiterStore:
    """Provide the process-wide rate limiter (shared store plus local fallback)."""
    settings = _settings().rate_limit
    return RateLimiterStore(
        durable=get_redis_counter_store(),
        requests_per_window=settings.requests_per_window,
        window_seconds=settings.window_seconds,
        store_timeout_seconds=settings.store_timeout_seconds,
        reconnect_backoff_seconds=settings.reconnect_backoff_seconds,
    )


@lru_cache()
def get_item_estimator() -> ItemEstimator:
    """Provide the per-item estimator wired to the research tools."""
    settings = _settings()
    tools = build_research_tools(get_gemini_client(), get_web_search_client())
    return ItemEstimator(
        tools, tool_timeout_seconds=settings.estimator.tool_timeout_seconds
    )


def get_estimate_orchestrator() -> EstimateOrchestrator:
    """Build an orchestrator over the shared limiter and estimator."""
    settings = _settings().estimator
    return EstimateOrchestrator(
        rate_limiter=get_rate_limiter(),
        item_estimator=get_item_estimator(),
        max_concurrency=settings.max_concurrency,
        request_timeout_seconds=settings.request_timeout_seconds,
    )


@lru_cache()
def get_api_key_store() -> SQLiteApiKeyStore:
    """Provide shared SQLite key registry."""
    settings = _settings()
    return SQLiteApiKeyStore(settings.auth.api_key_db_path)


def get_api_key_service() -> ApiKeyService:
    """Build the API key service over every configured key source."""
    settings = _settings().auth
    return ApiKeyService(
        get_api_key_store(),
        static_keys=settings.static_api_keys,
        keys_file=settings.api_keys_file,
    )


__all__ = [
    "get_api_key_service",
    "get_api_key_store",
    "get_estimate_orchestrator",
    "get_gemini_client",
    "get_item_estimator",
    "get_rate_limiter",
    "get_redis_counter_store",
    "get_web_search_client",
]
