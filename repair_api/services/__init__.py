"""Service layer exports."""

from .api_keys import ApiKeyError, ApiKeyService
from .item_estimator import ItemEstimator
from .orchestrator import EstimateOrchestrator
from .rate_limiter import LocalCounterStore, RateLimitDecision, RateLimiterStore
from .research_tools import ResearchTool, ToolError, ToolSpec, build_research_tools

__all__ = [
    "ApiKeyError",
    "ApiKeyService",
    "EstimateOrchestrator",
    "ItemEstimator",
    "LocalCounterStore",
    "RateLimitDecision",
    "RateLimiterStore",
    "ResearchTool",
    "ToolError",
    "ToolSpec",
    "build_research_tools",
]
