"""
API key issuance and authentication.

Keys are looked up in the SQLite registry first, then in the statically
configured keys, then in the JSON key file kept for older deployments.
Only SHA-256 hashes of registry keys are stored.
"""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from fastapi import status

from repair_api.clients import SQLiteApiKeyStore
from repair_api.models.api_key import ApiKeyRecord
from repair_api.schemas import ApiKeyStats, CreateApiKeyRequest

logger = logging.getLogger(__name__)

ESTIMATE_PERMISSION = "estimate"
_TIERS = ("basic", "premium", "enterprise")


class ApiKeyError(Exception):
    """Raised when a caller cannot be authenticated or authorized."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


def generate_api_key(prefix: str = "sk") -> str:
    return f"{prefix}_{secrets.token_urlsafe(32)}"


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _key_prefix(key: str) -> str:
    head, sep, _ = key.partition("_")
    return f"{head}_" if sep else key[:4]


def _tier_or_basic(tier: object) -> str:
    if isinstance(tier, str) and tier.lower() in _TIERS:
        return tier.lower()
    return "basic"


class ApiKeyService:
    """Authenticate estimate callers and manage registry keys."""

    def __init__(
        self,
        store: SQLiteApiKeyStore,
        *,
        static_keys: Iterable[str] = (),
        keys_file: Optional[str] = None,
    ) -> None:
        self._store = store
        self._static_keys = {key for key in static_keys if key}
        self._keys_file = Path(keys_file) if keys_file else None

    def authenticate(
        self, raw_key: Optional[str], *, permission: str = ESTIMATE_PERMISSION
    ) -> ApiKeyRecord:
        """Return the caller's key record or raise ``ApiKeyError``."""
        if not raw_key:
            raise ApiKeyError(status.HTTP_401_UNAUTHORIZED, "Invalid or missing API key")

        record = self._lookup(raw_key.strip())
        if record is None or not record.is_active or record.is_expired():
            raise ApiKeyError(status.HTTP_401_UNAUTHORIZED, "Invalid or missing API key")

        if not record.allows(permission):
            raise ApiKeyError(
                status.HTTP_403_FORBIDDEN,
                f"API key does not have permission for {permission}",
            )

        if record.source == "registry":
            daily, monthly = self._store.current_usage(record)
            if daily >= record.daily_quota or monthly >= record.monthly_quota:
                raise ApiKeyError(
                    status.HTTP_403_FORBIDDEN, "API key usage quota exhausted"
                )
        return record

    def record_usage(self, record: ApiKeyRecord) -> None:
        """Count one admitted request against a registry key."""
        if record.source != "registry":
            return
        self._store.increment_usage(record.id)

    def create_key(self, request: CreateApiKeyRequest) -> tuple[str, ApiKeyRecord]:
        """Issue a key; the plaintext is only available from this call."""
        key = generate_api_key(request.prefix)
        record = ApiKeyRecord(
            id=str(uuid.uuid4()),
            key_hash=hash_api_key(key),
            key_prefix=f"{request.prefix}_",
            name=request.name,
            owner_id=request.owner_id,
            owner_email=request.owner_email,
            permissions=request.permissions or {ESTIMATE_PERMISSION: True},
            rate_limit_tier=request.rate_limit_tier,
            daily_quota=request.daily_quota,
            monthly_quota=request.monthly_quota,
            expires_at=request.expires_at,
        )
        self._store.put_record(record)
        logger.info("Created API key %s for %s", record.id, record.owner_email)
        return key, record

    def list_keys(self, owner_id: str) -> List[ApiKeyRecord]:
        return [record for record in self._store.list_by_owner(owner_id) if record.is_active]

    def deactivate_key(self, key_id: str, owner_id: str) -> bool:
        record = self._store.get_by_id(key_id)
        if record is None or record.owner_id != owner_id or not record.is_active:
            return False
        self._store.put_record(record.model_copy(update={"is_active": False}))
        logger.info("Deactivated API key %s", key_id)
        return True

    def key_stats(self, key_id: str, owner_id: str) -> Optional[ApiKeyStats]:
        record = self._store.get_by_id(key_id)
        if record is None or record.owner_id != owner_id:
            return None
        daily, monthly = self._store.current_usage(record)
        return ApiKeyStats(
            daily_usage=daily,
            monthly_usage=monthly,
            total_usage=record.usage_count_total,
            daily_quota=record.daily_quota,
            monthly_quota=record.monthly_quota,
            last_used=record.last_used_at,
        )

    def _lookup(self, raw_key: str) -> Optional[ApiKeyRecord]:
        key_hash = hash_api_key(raw_key)
        record = self._store.get_by_hash(key_hash)
        if record is not None:
            return record

        if raw_key in self._static_keys:
            return ApiKeyRecord(
                id=key_hash[:16],
                key_hash=key_hash,
                key_prefix=_key_prefix(raw_key),
                name="Environment Key",
                source="environment",
            )

        file_entry = self._load_key_file().get(raw_key)
        if file_entry is not None:
            return ApiKeyRecord(
                id=key_hash[:16],
                key_hash=key_hash,
                key_prefix=_key_prefix(raw_key),
                name="JSON File Key",
                owner_email=file_entry.get("owner") or "unknown",
                rate_limit_tier=_tier_or_basic(file_entry.get("tier")),
                source="file",
            )
        return None

    def _load_key_file(self) -> Dict[str, dict]:
        if self._keys_file is None or not self._keys_file.exists():
            return {}
        try:
            data = json.loads(self._keys_file.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read API key file %s: %s", self._keys_file, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {key: value if isinstance(value, dict) else {} for key, value in data.items()}


__all__ = [
    "ApiKeyError",
    "ApiKeyService",
    "ESTIMATE_PERMISSION",
    "generate_api_key",
    "hash_api_key",
]
