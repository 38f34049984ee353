try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest

from repair_api.schemas import (
    CostBreakdown,
    CostEstimate,
    EstimateRequest,
    EstimateStatus,
    ItemEstimate,
    RecommendedAction,
    ToolFailureKind,
)
from repair_api.services.orchestrator import EstimateOrchestrator, summarize
from repair_api.services.rate_limiter import RateLimiterStore


def _request(count: int) -> EstimateRequest:
    return EstimateRequest.model_validate(
        {
            "inventoryItems": [
                {
                    "itemId": f"item-{index}",
                    "itemName": f"Item {index}",
                    "category": "plumbing",
                    "currentCondition": "Fair",
                    "originalCost": 100,
                }
                for index in range(count)
            ],
            "userLocation": {"city": "Seattle", "region": "WA"},
        }
    )


class RecordingEstimator:
    def __init__(self, delays: dict[str, float] | None = None) -> None:
        self.delays = delays or {}
        self.calls: list[str] = []
        self.current = 0
        self.peak = 0
        self.fail_ids: set[str] = set()

    async def estimate(self, item, location, currency="USD") -> ItemEstimate:
        self.calls.append(item.item_id)
        self.current += 1
        self.peak = max(self.peak, self.current)
        try:
            await asyncio.sleep(self.delays.get(item.item_id, 0.01))
            if item.item_id in self.fail_ids:
                raise RuntimeError("estimator crashed")
            return ItemEstimate(item_id=item.item_id, status=EstimateStatus.SUCCEEDED)
        finally:
            self.current -= 1


def _orchestrator(estimator, *, limit: int = 10, **kwargs) -> EstimateOrchestrator:
    return EstimateOrchestrator(
        rate_limiter=RateLimiterStore(durable=None, requests_per_window=limit),
        item_estimator=estimator,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_results_follow_input_order() -> None:
    estimator = RecordingEstimator(
        delays={"item-0": 0.05, "item-1": 0.0, "item-2": 0.03, "item-3": 0.01}
    )
    orchestrator = _orchestrator(estimator, max_concurrency=4)

    response = await orchestrator.run(_request(4), client_key="apiKey:abc")

    assert [result.item_id for result in response.results] == [
        "item-0",
        "item-1",
        "item-2",
        "item-3",
    ]
    assert response.rate_limited is False
    assert response.currency == "USD"
    assert response.is_store_ready is False


@pytest.mark.asyncio
async def test_concurrency_is_bounded() -> None:
    estimator = RecordingEstimator()
    orchestrator = _orchestrator(estimator, max_concurrency=2)

    response = await orchestrator.run(_request(6), client_key="apiKey:abc")

    assert len(response.results) == 6
    assert estimator.peak == 2


@pytest.mark.asyncio
async def test_rate_limited_request_does_no_research() -> None:
    estimator = RecordingEstimator()
    orchestrator = _orchestrator(estimator, limit=1)

    await orchestrator.run(_request(1), client_key="apiKey:abc")
    estimator.calls.clear()
    response = await orchestrator.run(_request(3), client_key="apiKey:abc")

    assert response.rate_limited is True
    assert response.results == []
    assert response.retry_after_seconds >= 1
    assert estimator.calls == []


@pytest.mark.asyncio
async def test_tier_limit_is_passed_to_limiter() -> None:
    estimator = RecordingEstimator()
    orchestrator = _orchestrator(estimator, limit=1)

    first = await orchestrator.run(_request(1), client_key="apiKey:vip", limit=2)
    second = await orchestrator.run(_request(1), client_key="apiKey:vip", limit=2)

    assert first.rate_limited is False
    assert second.rate_limited is False


@pytest.mark.asyncio
async def test_estimator_crash_fails_only_that_item() -> None:
    estimator = RecordingEstimator()
    estimator.fail_ids = {"item-1"}
    orchestrator = _orchestrator(estimator)

    response = await orchestrator.run(_request(3), client_key="apiKey:abc")

    statuses = [result.status for result in response.results]
    assert statuses == [
        EstimateStatus.SUCCEEDED,
        EstimateStatus.FAILED,
        EstimateStatus.SUCCEEDED,
    ]
    failed = response.results[1]
    assert set(failed.errors) == {"labor", "material", "repair"}
    assert failed.errors["labor"].kind is ToolFailureKind.UPSTREAM_ERROR


@pytest.mark.asyncio
async def test_request_deadline_fails_pending_items() -> None:
    estimator = RecordingEstimator(delays={"item-1": 5.0})
    orchestrator = _orchestrator(estimator, request_timeout_seconds=0.1)

    response = await orchestrator.run(_request(2), client_key="apiKey:abc")

    assert response.results[0].status is EstimateStatus.SUCCEEDED
    assert response.results[1].status is EstimateStatus.FAILED
    assert response.results[1].errors["repair"].kind is ToolFailureKind.TIMEOUT


def test_concurrency_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _orchestrator(RecordingEstimator(), max_concurrency=0)


def _priced(item_id: str, fix: float | None, replace: float | None, action: str) -> ItemEstimate:
    def breakdown(parts: float) -> CostBreakdown:
        return CostBreakdown(
            labor_hours=2, labor_rate=100, parts_cost=parts, total_cost=200 + parts
        )

    return ItemEstimate(
        item_id=item_id,
        status=EstimateStatus.SUCCEEDED,
        cost=CostEstimate(
            fix=breakdown(fix) if fix is not None else None,
            replace=breakdown(replace) if replace is not None else None,
            recommended_action=action,
        ),
    )


def test_summary_totals_priced_items() -> None:
    results = [
        _priced("sink", fix=50, replace=400, action="Fix"),
        _priced("heater", fix=1500, replace=900, action="Replace"),
        _priced("door", fix=None, replace=300, action="Replace"),
        ItemEstimate(item_id="roof", status=EstimateStatus.FAILED),
    ]

    summary = summarize(results)

    assert summary.total_fix_cost == 250 + 1700
    assert summary.total_replace_cost == 600 + 1100 + 500
    assert summary.total_recommended_cost == 250 + 1100 + 500
    assert summary.total_labor_cost == 600
    assert summary.total_material_cost == 50 + 900 + 300
    assert summary.items_to_repair == 1
    assert summary.items_to_replace == 2
    assert summary.items_without_cost == 1


def test_recommended_option_must_be_priced() -> None:
    with pytest.raises(ValueError):
        CostEstimate(
            fix=CostBreakdown(labor_hours=1, labor_rate=80, parts_cost=0, total_cost=80),
            recommended_action=RecommendedAction.REPLACE,
        )


@pytest.mark.asyncio
async def test_admitted_response_carries_summary_and_metadata() -> None:
    orchestrator = _orchestrator(RecordingEstimator())

    response = await orchestrator.run(_request(2), client_key="apiKey:abc")

    assert response.summary.items_without_cost == 2
    assert response.summary.total_recommended_cost == 0
    assert response.metadata.currency == "USD"
    assert response.metadata.location == "Seattle, WA"
    assert response.metadata.estimate_date.tzinfo is not None


@pytest.mark.asyncio
async def test_rate_limited_response_has_no_summary() -> None:
    orchestrator = _orchestrator(RecordingEstimator(), limit=1)

    await orchestrator.run(_request(1), client_key="apiKey:abc")
    response = await orchestrator.run(_request(1), client_key="apiKey:abc")

    assert response.rate_limited is True
    assert response.summary is None
    assert response.metadata is None
