"""
Batch estimate orchestration.

Admission is decided before any research starts; admitted batches fan out one
item estimate per inventory item under a concurrency cap and are returned in
request order.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence

from repair_api.schemas import (
    EstimateMetadata,
    EstimateRequest,
    EstimateResponse,
    EstimateStatus,
    EstimateSummary,
    InventoryItem,
    ItemEstimate,
    RecommendedAction,
    ToolFailure,
    ToolFailureKind,
    UserLocation,
)
from repair_api.services.item_estimator import TOOL_NAMES
from repair_api.services.rate_limiter import RateLimiterStore

logger = logging.getLogger(__name__)


class Estimator(Protocol):
    async def estimate(
        self, item: InventoryItem, location: UserLocation, currency: str = ...
    ) -> ItemEstimate: ...


class EstimateOrchestrator:
    """Apply the rate limiter, then estimate every item with bounded fan-out."""

    def __init__(
        self,
        *,
        rate_limiter: RateLimiterStore,
        item_estimator: Estimator,
        max_concurrency: int = 4,
        request_timeout_seconds: Optional[float] = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._rate_limiter = rate_limiter
        self._item_estimator = item_estimator
        self._max_concurrency = max_concurrency
        self._request_timeout = request_timeout_seconds

    async def run(
        self,
        request: EstimateRequest,
        client_key: str,
        *,
        limit: Optional[int] = None,
    ) -> EstimateResponse:
        decision = await self._rate_limiter.check_and_increment(client_key, limit=limit)
        if not decision.allowed:
            return EstimateResponse(
                results=[],
                rate_limited=True,
                retry_after_seconds=decision.retry_after_seconds,
                currency=request.currency,
                is_store_ready=not decision.degraded,
            )

        results = await self._estimate_all(request)
        failed = sum(1 for result in results if result.status is EstimateStatus.FAILED)
        logger.info(
            "Estimated %d items for %s (%d failed, degraded=%s)",
            len(results),
            client_key,
            failed,
            decision.degraded,
        )
        return EstimateResponse(
            results=results,
            summary=summarize(results),
            metadata=EstimateMetadata(
                estimate_date=datetime.now(timezone.utc),
                currency=request.currency,
                location=request.user_location.label(),
            ),
            rate_limited=False,
            currency=request.currency,
            is_store_ready=not decision.degraded,
        )

    async def _estimate_all(self, request: EstimateRequest) -> List[ItemEstimate]:
        # Semaphore waiters are released FIFO and tasks start in input order.
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _bounded(item: InventoryItem) -> ItemEstimate:
            async with semaphore:
                return await self._item_estimator.estimate(
                    item, request.user_location, request.currency
                )

        tasks = [
            asyncio.create_task(_bounded(item), name=f"estimate:{item.item_id}")
            for item in request.inventory_items
        ]
        if self._request_timeout is None:
            await asyncio.wait(tasks)
        else:
            _, pending = await asyncio.wait(tasks, timeout=self._request_timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(
                    "Request deadline of %gs reached with %d items pending",
                    self._request_timeout,
                    len(pending),
                )

        return [
            self._collect(item, task)
            for item, task in zip(request.inventory_items, tasks)
        ]

    def _collect(self, item: InventoryItem, task: asyncio.Task) -> ItemEstimate:
        if task.cancelled():
            return _failed_estimate(item, ToolFailureKind.TIMEOUT, "request deadline exceeded")
        exc = task.exception()
        if exc is not None:
            logger.error("Item estimator raised for %s", item.item_id, exc_info=exc)
            return _failed_estimate(
                item, ToolFailureKind.UPSTREAM_ERROR, f"{type(exc).__name__}: {exc}"
            )
        return task.result()


def summarize(results: Sequence[ItemEstimate]) -> EstimateSummary:
    """Total fix, replace and recommended costs across priced items."""
    totals = {
        "total_fix_cost": 0.0,
        "total_replace_cost": 0.0,
        "total_recommended_cost": 0.0,
        "total_labor_cost": 0.0,
        "total_material_cost": 0.0,
    }
    to_repair = to_replace = unpriced = 0
    for result in results:
        cost = result.cost
        if cost is None:
            unpriced += 1
            continue
        if cost.fix is not None:
            totals["total_fix_cost"] += cost.fix.total_cost
        if cost.replace is not None:
            totals["total_replace_cost"] += cost.replace.total_cost
        chosen = cost.recommended
        totals["total_recommended_cost"] += chosen.total_cost
        totals["total_labor_cost"] += chosen.labor_cost
        totals["total_material_cost"] += chosen.parts_cost
        if cost.recommended_action is RecommendedAction.FIX:
            to_repair += 1
        else:
            to_replace += 1
    return EstimateSummary(
        **{name: round(value, 2) for name, value in totals.items()},
        items_to_repair=to_repair,
        items_to_replace=to_replace,
        items_without_cost=unpriced,
    )


def _failed_estimate(item: InventoryItem, kind: ToolFailureKind, message: str) -> ItemEstimate:
    failure = ToolFailure(kind=kind, message=message)
    return ItemEstimate(
        item_id=item.item_id,
        status=EstimateStatus.FAILED,
        errors={name: failure for name in TOOL_NAMES},
    )


__all__ = ["EstimateOrchestrator", "Estimator", "summarize"]
