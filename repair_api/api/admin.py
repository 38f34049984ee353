"""
Administrative routes for issuing and revoking API keys.
"""

from __future__ import annotations

import hmac
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from repair_api.core.config import AppSettings
from repair_api.dependencies import get_api_key_service, get_app_settings
from repair_api.models.api_key import ApiKeyRecord
from repair_api.schemas import (
    ApiKeyStats,
    ApiKeySummary,
    CreateApiKeyRequest,
    CreatedApiKey,
    DeactivateApiKeyRequest,
)


def require_admin(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    x_admin_key: Annotated[str | None, Header(alias="X-ADMIN-KEY")] = None,
) -> None:
    """Reject callers that do not present the configured admin key."""
    expected = settings.auth.admin_api_key
    if not expected or not x_admin_key or not hmac.compare_digest(
        x_admin_key.encode("utf-8"), expected.encode("utf-8")
    ):
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Admin authentication required",
        )


router = APIRouter(dependencies=[Depends(require_admin)])


def _summarize(record: ApiKeyRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "prefix": record.key_prefix,
        "owner_email": record.owner_email,
        "permissions": record.permissions,
        "rate_limit_tier": record.rate_limit_tier,
        "daily_quota": record.daily_quota,
        "monthly_quota": record.monthly_quota,
        "usage_count_daily": record.usage_count_daily,
        "usage_count_monthly": record.usage_count_monthly,
        "usage_count_total": record.usage_count_total,
        "last_used_at": record.last_used_at,
        "created_at": record.created_at,
        "expires_at": record.expires_at,
        "is_active": record.is_active,
    }


@router.post("/api-keys", response_model=CreatedApiKey, status_code=HTTPStatus.CREATED)
def create_api_key(
    payload: CreateApiKeyRequest,
    service: Annotated[Any, Depends(get_api_key_service)],
) -> CreatedApiKey:
    """Issue a key. The plaintext is returned only in this response."""
    key, record = service.create_key(payload)
    return CreatedApiKey(key=key, **_summarize(record))


@router.get("/api-keys", response_model=dict[str, list[ApiKeySummary]])
def list_api_keys(
    service: Annotated[Any, Depends(get_api_key_service)],
    owner_id: str = Query(..., alias="ownerId"),
) -> dict[str, list[ApiKeySummary]]:
    records = service.list_keys(owner_id)
    return {"keys": [ApiKeySummary(**_summarize(record)) for record in records]}


@router.delete("/api-keys", status_code=HTTPStatus.OK)
def deactivate_api_key(
    payload: DeactivateApiKeyRequest,
    service: Annotated[Any, Depends(get_api_key_service)],
) -> dict[str, str]:
    if not service.deactivate_key(payload.key_id, payload.owner_id):
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail="API key not found or already deactivated",
        )
    return {"message": "API key deactivated successfully"}


@router.get("/api-keys/stats", response_model=ApiKeyStats)
def get_api_key_stats(
    service: Annotated[Any, Depends(get_api_key_service)],
    key_id: str = Query(..., alias="keyId"),
    owner_id: str = Query(..., alias="ownerId"),
) -> ApiKeyStats:
    stats = service.key_stats(key_id, owner_id)
    if stats is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="API key not found")
    return stats


__all__ = ["require_admin", "router"]
