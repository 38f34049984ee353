"""Schemas for the API key administration endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from repair_api.models.api_key import RateLimitTier


class _AdminModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateApiKeyRequest(_AdminModel):
    """Payload for issuing a new API key."""

    name: str = Field(..., min_length=1)
    owner_email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    owner_id: Optional[str] = None
    permissions: Optional[Dict[str, bool]] = None
    rate_limit_tier: RateLimitTier = "basic"
    daily_quota: int = Field(100, gt=0)
    monthly_quota: int = Field(3000, gt=0)
    expires_at: Optional[datetime] = None
    prefix: str = Field("sk", min_length=1, max_length=16, pattern=r"^[A-Za-z0-9]+$")


class DeactivateApiKeyRequest(_AdminModel):
    key_id: str
    owner_id: str


class ApiKeySummary(_AdminModel):
    """Key metadata safe to return to administrators (no hash)."""

    id: str
    name: str
    prefix: str
    owner_email: str
    permissions: Dict[str, bool]
    rate_limit_tier: str
    daily_quota: int
    monthly_quota: int
    usage_count_daily: int
    usage_count_monthly: int
    usage_count_total: int
    last_used_at: Optional[datetime] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool


class CreatedApiKey(ApiKeySummary):
    key: str = Field(..., description="Plaintext key; only returned at creation time.")
    warning: str = "Save this key securely - it will not be shown again!"


class ApiKeyStats(_AdminModel):
    daily_usage: int
    monthly_usage: int
    total_usage: int
    daily_quota: int
    monthly_quota: int
    last_used: Optional[datetime] = None


__all__ = [
    "ApiKeyStats",
    "ApiKeySummary",
    "CreateApiKeyRequest",
    "CreatedApiKey",
    "DeactivateApiKeyRequest",
]
