"""SQLite-backed registry of hashed API keys and their usage counters."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from repair_api.models.api_key import ApiKeyRecord


class SQLiteApiKeyStore:
    """Persist API key records keyed by id, with a unique index on the key hash."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS api_keys (
                    id TEXT PRIMARY KEY,
                    key_hash TEXT NOT NULL UNIQUE,
                    owner_id TEXT,
                    usage_day TEXT,
                    usage_month TEXT,
                    data TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_api_keys_owner ON api_keys (owner_id)"
            )

    def put_record(self, record: ApiKeyRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO api_keys (id, key_hash, owner_id, data)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    key_hash = excluded.key_hash,
                    owner_id = excluded.owner_id,
                    data = excluded.data
                """,
                (record.id, record.key_hash, record.owner_id, record.model_dump_json()),
            )

    def get_by_hash(self, key_hash: str) -> Optional[ApiKeyRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM api_keys WHERE key_hash = ?", (key_hash,)
            ).fetchone()
        if not row:
            return None
        return ApiKeyRecord.model_validate_json(row["data"])

    def get_by_id(self, key_id: str) -> Optional[ApiKeyRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM api_keys WHERE id = ?", (key_id,)
            ).fetchone()
        if not row:
            return None
        return ApiKeyRecord.model_validate_json(row["data"])

    def list_by_owner(self, owner_id: str) -> list[ApiKeyRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM api_keys WHERE owner_id = ?", (owner_id,)
            ).fetchall()
        records = [ApiKeyRecord.model_validate_json(row["data"]) for row in rows]
        return sorted(records, key=lambda record: record.created_at, reverse=True)

    def increment_usage(
        self, key_id: str, *, now: datetime | None = None
    ) -> Optional[ApiKeyRecord]:
        """Count one use, resetting daily/monthly counters on rollover."""
        now = now or datetime.now(timezone.utc)
        day, month = now.strftime("%Y-%m-%d"), now.strftime("%Y-%m")
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT data, usage_day, usage_month FROM api_keys WHERE id = ?",
                (key_id,),
            ).fetchone()
            if not row:
                conn.rollback()
                return None
            data = json.loads(row["data"])
            if row["usage_day"] != day:
                data["usage_count_daily"] = 0
            if row["usage_month"] != month:
                data["usage_count_monthly"] = 0
            data["usage_count_daily"] = data.get("usage_count_daily", 0) + 1
            data["usage_count_monthly"] = data.get("usage_count_monthly", 0) + 1
            data["usage_count_total"] = data.get("usage_count_total", 0) + 1
            data["last_used_at"] = now.isoformat()
            record = ApiKeyRecord.model_validate(data)
            conn.execute(
                """
                UPDATE api_keys SET usage_day = ?, usage_month = ?, data = ?
                WHERE id = ?
                """,
                (day, month, record.model_dump_json(), key_id),
            )
            conn.commit()
            return record
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def current_usage(
        self, record: ApiKeyRecord, *, now: datetime | None = None
    ) -> tuple[int, int]:
        """Return ``(daily, monthly)`` usage as of ``now``, honoring rollover."""
        now = now or datetime.now(timezone.utc)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT usage_day, usage_month FROM api_keys WHERE id = ?",
                (record.id,),
            ).fetchone()
        if not row:
            return 0, 0
        daily = (
            record.usage_count_daily if row["usage_day"] == now.strftime("%Y-%m-%d") else 0
        )
        monthly = (
            record.usage_count_monthly if row["usage_month"] == now.strftime("%Y-%m") else 0
        )
        return daily, monthly


__all__ = ["SQLiteApiKeyStore"]
