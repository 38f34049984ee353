"""Public schema exports."""

from .auth import (
    ApiKeyStats,
    ApiKeySummary,
    CreateApiKeyRequest,
    CreatedApiKey,
    DeactivateApiKeyRequest,
)
from .estimate import (
    CostBreakdown,
    CostEstimate,
    EstimateMetadata,
    EstimateRequest,
    EstimateResponse,
    EstimateStatus,
    EstimateSummary,
    HealthResponse,
    InventoryItem,
    ItemCondition,
    ItemEstimate,
    RateLimitedResponse,
    RecommendedAction,
    SearchSource,
    ToolAnswer,
    ToolFailure,
    ToolFailureKind,
    UserLocation,
)

__all__ = [
    "ApiKeyStats",
    "ApiKeySummary",
    "CreateApiKeyRequest",
    "CreatedApiKey",
    "CostBreakdown",
    "CostEstimate",
    "DeactivateApiKeyRequest",
    "EstimateMetadata",
    "EstimateRequest",
    "EstimateResponse",
    "EstimateStatus",
    "EstimateSummary",
    "HealthResponse",
    "InventoryItem",
    "ItemCondition",
    "ItemEstimate",
    "RateLimitedResponse",
    "RecommendedAction",
    "SearchSource",
    "ToolAnswer",
    "ToolFailure",
    "ToolFailureKind",
    "UserLocation",
]
