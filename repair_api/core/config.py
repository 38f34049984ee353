"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the estimate services and
the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(part.strip() for part in value.split(",") if part.strip())


class RateLimitSettings(BaseSettings):
    """Quota, window and durable store configuration for admission control."""

    model_config = SettingsConfigDict(populate_by_name=True)

    redis_url: Optional[str] = Field(
        None,
        validation_alias="REDIS_URL",
        description="Connection string for the shared counter store.",
    )
    requests_per_window: int = Field(20, validation_alias="RATE_LIMIT_REQUESTS", ge=1)
    window_seconds: int = Field(60, validation_alias="RATE_LIMIT_WINDOW_SECONDS", ge=1)
    tier_limits: Annotated[dict[str, int], NoDecode] = Field(
        {"basic": 20, "premium": 100, "enterprise": 500},
        validation_alias="RATE_LIMIT_TIER_LIMITS",
    )
    store_timeout_seconds: float = Field(
        0.5, validation_alias="RATE_LIMIT_STORE_TIMEOUT_SECONDS", gt=0
    )
    reconnect_backoff_seconds: float = Field(
        0.0,
        validation_alias="RATE_LIMIT_RECONNECT_BACKOFF_SECONDS",
        ge=0,
        description="How long to stay on the local counter after a store failure.",
    )

    @field_validator("tier_limits", mode="before")
    def _parse_tier_limits(cls, value: str | dict[str, int]) -> dict[str, int]:
        """Support providing tier limits as ``tier=limit`` pairs."""
        if isinstance(value, dict):
            return value
        limits: dict[str, int] = {}
        for pair in _split_csv(value):
            tier, sep, limit = pair.partition("=")
            if not sep:
                raise ValueError(f"Expected tier=limit, got {pair!r}")
            limits[tier.strip().lower()] = int(limit)
        return limits

    @field_validator("tier_limits", mode="after")
    def _positive_tier_limits(cls, value: dict[str, int]) -> dict[str, int]:
        invalid = sorted(tier for tier, limit in value.items() if limit < 1)
        if invalid:
            raise ValueError(f"Tier limits must be at least 1: {', '.join(invalid)}")
        return value

    def limit_for_tier(self, tier: str | None) -> int:
        if tier and tier.lower() in self.tier_limits:
            return self.tier_limits[tier.lower()]
        return self.requests_per_window


class EstimatorSettings(BaseSettings):
    """Fan-out, timeout and request bounds for estimate generation."""

    model_config = SettingsConfigDict(populate_by_name=True)

    tool_timeout_seconds: float = Field(
        30.0, validation_alias="ESTIMATE_TOOL_TIMEOUT_SECONDS", gt=0
    )
    max_concurrency: int = Field(4, validation_alias="ESTIMATE_MAX_CONCURRENCY", ge=1)
    max_items: int = Field(50, validation_alias="ESTIMATE_MAX_ITEMS", ge=1)
    request_timeout_seconds: Optional[float] = Field(
        None,
        validation_alias="ESTIMATE_REQUEST_TIMEOUT_SECONDS",
        gt=0,
        description="Optional deadline for a whole estimate request.",
    )
    supported_currencies: Annotated[tuple[str, ...], NoDecode] = Field(
        ("USD", "CAD", "EUR", "GBP", "AUD"),
        validation_alias="ESTIMATE_SUPPORTED_CURRENCIES",
    )

    @field_validator("supported_currencies", mode="before")
    def _split_currencies(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return tuple(code.upper() for code in _split_csv(value))


class AuthSettings(BaseSettings):
    """API key sources for the estimate and admin endpoints."""

    model_config = SettingsConfigDict(populate_by_name=True)

    static_api_keys: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="ESTIMATE_API_KEYS",
        description="Comma-separated keys accepted with the basic tier.",
    )
    api_keys_file: str = Field("apiKeys.json", validation_alias="API_KEYS_FILE")
    api_key_db_path: str = Field("data/api_keys.db", validation_alias="API_KEY_DB_PATH")
    admin_api_key: Optional[str] = Field(None, validation_alias="ADMIN_API_KEY")

    @field_validator("static_api_keys", mode="before")
    def _split_keys(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        return _split_csv(value)


class GeminiSettings(BaseSettings):
    """Configuration for Gemini model access."""

    model_config = SettingsConfigDict(populate_by_name=True)

    api_key: str = Field(..., validation_alias="GEMINI_API_KEY")
    quick_model_name: str = Field(
        "gemini-1.5-flash", validation_alias="GEMINI_QUICK_MODEL_NAME"
    )
    deliberate_model_name: str = Field(
        "gemini-1.5-pro", validation_alias="GEMINI_DELIBERATE_MODEL_NAME"
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    estimator: EstimatorSettings = Field(default_factory=EstimatorSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    serpapi_api_key: Optional[str] = Field(
        None,
        validation_alias="SERPAPI_API_KEY",
        description="Optional SerpAPI key used to ground research in web results.",
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "AuthSettings",
    "EstimatorSettings",
    "GeminiSettings",
    "RateLimitSettings",
    "get_settings",
]
