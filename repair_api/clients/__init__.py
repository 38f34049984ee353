"""Expose constructed client wrappers."""

from .gemini import GeminiClient, GeminiModelError
from .redis_store import RedisCounterStore
from .sqlite_store import SQLiteApiKeyStore
from .web_search import WebSearchClient

__all__ = [
    "GeminiClient",
    "GeminiModelError",
    "RedisCounterStore",
    "SQLiteApiKeyStore",
    "WebSearchClient",
]
