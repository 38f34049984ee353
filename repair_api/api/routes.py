"""
FastAPI routes for the repair estimate API.
"""

from __future__ import annotations

import asyncio
import json
import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from repair_api.core.config import EstimatorSettings, RateLimitSettings
from repair_api.dependencies import (
    get_api_key_service,
    get_estimate_orchestrator,
    get_estimator_settings,
    get_rate_limit_settings,
    get_rate_limiter,
)
from repair_api.models.api_key import ApiKeyRecord
from repair_api.schemas import (
    EstimateRequest,
    EstimateResponse,
    HealthResponse,
    RateLimitedResponse,
)
from repair_api.services.api_keys import ApiKeyError

router = APIRouter()
health_router = APIRouter()
logger = logging.getLogger(__name__)


@health_router.get("/health", response_model=HealthResponse, status_code=HTTPStatus.OK)
async def healthcheck(
    rate_limiter: Annotated[Any, Depends(get_rate_limiter)],
) -> HealthResponse:
    """Liveness plus whether rate limiting is backed by the shared store."""
    if not rate_limiter.is_configured:
        return HealthResponse(is_store_ready=False, redis="not_configured")
    ready = await rate_limiter.check_health()
    return HealthResponse(
        is_store_ready=ready, redis="connected" if ready else "unavailable"
    )


@router.post(
    "/estimate",
    response_model=EstimateResponse,
    response_model_exclude_none=True,
    status_code=HTTPStatus.OK,
    responses={
        HTTPStatus.BAD_REQUEST: {"description": "Malformed or incomplete request."},
        HTTPStatus.UNAUTHORIZED: {"description": "Missing or invalid API key."},
        HTTPStatus.FORBIDDEN: {"description": "API key lacks permission or quota."},
        HTTPStatus.TOO_MANY_REQUESTS: {"model": RateLimitedResponse},
    },
)
async def create_estimate(
    request: Request,
    api_keys: Annotated[Any, Depends(get_api_key_service)],
    orchestrator: Annotated[Any, Depends(get_estimate_orchestrator)],
    estimator_settings: Annotated[EstimatorSettings, Depends(get_estimator_settings)],
    rate_limit_settings: Annotated[RateLimitSettings, Depends(get_rate_limit_settings)],
    x_api_key: Annotated[str | None, Header(alias="X-API-KEY")] = None,
    api_key: str | None = Query(
        default=None, description="API key, when the X-API-KEY header is not usable."
    ),
) -> Any:
    """Price every inventory item; authentication precedes body validation."""
    try:
        # The key registry is SQLite; keep its blocking I/O off the event loop.
        record: ApiKeyRecord = await asyncio.to_thread(
            api_keys.authenticate, x_api_key or api_key
        )
    except ApiKeyError as exc:
        logger.info("Rejected estimate request (%d): %s", exc.status_code, exc.detail)
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc

    payload = await _parse_estimate_request(request, estimator_settings)

    limit = None
    if record.source != "environment":
        limit = rate_limit_settings.limit_for_tier(record.rate_limit_tier)

    result: EstimateResponse = await orchestrator.run(
        payload, client_key=f"apiKey:{record.id}", limit=limit
    )
    if result.rate_limited:
        retry_after = result.retry_after_seconds or 1
        body = RateLimitedResponse(retry_after_seconds=retry_after)
        return JSONResponse(
            status_code=HTTPStatus.TOO_MANY_REQUESTS,
            content=body.model_dump(by_alias=True),
            headers={"Retry-After": str(retry_after)},
        )

    await asyncio.to_thread(api_keys.record_usage, record)
    return result


async def _parse_estimate_request(
    request: Request, limits: EstimatorSettings
) -> EstimateRequest:
    """Validate the raw body; every failure maps to 400."""
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={"message": "Request body must be valid JSON."},
        ) from exc

    try:
        payload = EstimateRequest.model_validate(raw)
    except ValidationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={
                "message": "Invalid payload",
                "errors": exc.errors(include_url=False, include_context=False),
            },
        ) from exc

    if len(payload.inventory_items) > limits.max_items:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={
                "message": f"inventoryItems accepts at most {limits.max_items} items.",
                "field": "inventoryItems",
            },
        )
    if payload.currency not in limits.supported_currencies:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={
                "message": (
                    f"Unsupported currency {payload.currency}; expected one of "
                    f"{', '.join(limits.supported_currencies)}."
                ),
                "field": "currency",
            },
        )
    return payload


__all__ = ["health_router", "router"]
