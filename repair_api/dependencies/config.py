"""
Settings dependencies.

Routes depend on the section they read; every section resolves through
``get_app_settings`` so a single override swaps the whole configuration.
"""

from typing import Annotated

from fastapi import Depends

from repair_api.core.config import (
    AppSettings,
    EstimatorSettings,
    RateLimitSettings,
    get_settings,
)


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning the process-wide settings."""
    return get_settings()


def get_estimator_settings(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> EstimatorSettings:
    return settings.estimator


def get_rate_limit_settings(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> RateLimitSettings:
    return settings.rate_limit


__all__ = ["get_app_settings", "get_estimator_settings", "get_rate_limit_settings"]
