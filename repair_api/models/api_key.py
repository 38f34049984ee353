"""
Domain models for API key persistence.
"""

from datetime import datetime, timezone
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field

RateLimitTier = Literal["basic", "premium", "enterprise"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiKeyRecord(BaseModel):
    """Represents an API key record stored in the key registry."""

    id: str = Field(..., description="Stable identifier; never the key itself.")
    key_hash: str = Field(..., description="SHA-256 hex digest of the plaintext key.")
    key_prefix: str
    name: str
    owner_id: Optional[str] = None
    owner_email: str = "unknown"
    permissions: Dict[str, bool] = Field(default_factory=lambda: {"estimate": True})
    rate_limit_tier: RateLimitTier = "basic"
    daily_quota: int = 1000
    monthly_quota: int = 30000
    usage_count_daily: int = 0
    usage_count_monthly: int = 0
    usage_count_total: int = 0
    last_used_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    expires_at: Optional[datetime] = None
    is_active: bool = True
    source: Literal["registry", "environment", "file"] = "registry"

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return (now or _utcnow()) >= expires_at

    def allows(self, permission: str) -> bool:
        return bool(self.permissions.get(permission))


__all__ = ["ApiKeyRecord", "RateLimitTier"]
