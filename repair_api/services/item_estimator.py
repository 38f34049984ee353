"""Per-item estimate built from concurrent labor, material and repair lookups."""

from __future__ import annotations

import asyncio
import logging
from statistics import median
from typing import Dict, Mapping, Optional, Protocol

from repair_api.schemas import (
    CostBreakdown,
    CostEstimate,
    EstimateStatus,
    InventoryItem,
    ItemCondition,
    ItemEstimate,
    RecommendedAction,
    ToolAnswer,
    ToolFailure,
    ToolFailureKind,
    UserLocation,
)
from repair_api.services.research_tools import ToolError, extract_hours

logger = logging.getLogger(__name__)

TOOL_NAMES = ("labor", "material", "repair")

_TRADES = {
    "plumbing": "plumber",
    "electrical": "electrician",
    "hvac": "HVAC technician",
    "heating": "HVAC technician",
    "roofing": "roofer",
    "flooring": "flooring installer",
    "painting": "painter",
    "appliances": "appliance repair technician",
    "appliance": "appliance repair technician",
    "carpentry": "carpenter",
    "drywall": "drywall contractor",
    "landscaping": "landscaper",
    "windows": "glazier",
    "doors": "carpenter",
}

_COMPLEXITY = {
    ItemCondition.POOR: "advanced",
    ItemCondition.FAIR: "intermediate",
    ItemCondition.GOOD: "basic",
    ItemCondition.EXCELLENT: "basic",
}

_ISSUES = {
    ItemCondition.POOR: "severe wear or failure",
    ItemCondition.FAIR: "moderate wear",
    ItemCondition.GOOD: "minor wear",
    ItemCondition.EXCELLENT: "routine maintenance",
}

# Used when the labor answer quotes a rate but no duration.
_DEFAULT_HOURS = {
    ItemCondition.POOR: 4.0,
    ItemCondition.FAIR: 2.0,
    ItemCondition.GOOD: 1.0,
    ItemCondition.EXCELLENT: 1.0,
}


class AnsweringTool(Protocol):
    async def answer(
        self, query: Mapping[str, str], location: UserLocation, currency: str = ...
    ) -> ToolAnswer: ...


def trade_for(category: str) -> str:
    return _TRADES.get(category.strip().lower(), "general contractor")


def build_tool_queries(item: InventoryItem) -> Dict[str, Dict[str, str]]:
    """Translate an inventory item into the field set each tool expects."""
    condition = item.current_condition
    action = "replace" if condition is ItemCondition.POOR else "repair"
    description = item.item_name
    if item.location:
        description = f"{item.item_name} in the {item.location}"
    return {
        "labor": {
            "work_type": f"{item.item_name} {action}",
            "trade": trade_for(item.category),
            "complexity": _COMPLEXITY[condition],
        },
        "material": {
            "item_type": item.item_name,
            "category": item.category,
            "quality_level": "premium" if item.original_cost >= 2000 else "standard",
        },
        "repair": {
            "item_description": description,
            "action_type": action,
            "issue_type": _ISSUES[condition],
        },
    }


def _breakdown(hours: float, rate: float, parts: float) -> CostBreakdown:
    return CostBreakdown(
        labor_hours=round(hours, 2),
        labor_rate=round(rate, 2),
        parts_cost=round(parts, 2),
        total_cost=round(hours * rate + parts, 2),
    )


def estimate_costs(
    item: InventoryItem, answers: Mapping[str, ToolAnswer]
) -> Optional[CostEstimate]:
    """
    Reduce the tool answers for one item to fix and replace costs.

    The labor rate is the mean of the first two labor figures (a quoted range
    collapses to its midpoint) and the duration comes from the labor summary.
    Fix parts are the amounts quoted in the repair instructions; replace parts
    are the median material price, falling back to the item's original cost
    when the material answer quotes none. An option is omitted when the answer
    it depends on is missing, and no estimate is produced without a labor rate.
    The cheaper option is recommended, fix on a tie.
    """
    labor = answers.get("labor")
    if labor is None or not labor.figures:
        return None
    rate = sum(labor.figures[:2]) / len(labor.figures[:2])
    hours = extract_hours(labor.summary)
    if hours is None:
        hours = _DEFAULT_HOURS[item.current_condition]

    fix: Optional[CostBreakdown] = None
    repair = answers.get("repair")
    if repair is not None:
        fix = _breakdown(hours, rate, sum(repair.figures))

    replace: Optional[CostBreakdown] = None
    material = answers.get("material")
    if material is not None:
        parts = median(material.figures) if material.figures else item.original_cost
        replace = _breakdown(hours, rate, parts)

    if fix is None and replace is None:
        return None
    if replace is None or (fix is not None and fix.total_cost <= replace.total_cost):
        action = RecommendedAction.FIX
    else:
        action = RecommendedAction.REPLACE
    return CostEstimate(fix=fix, replace=replace, recommended_action=action)


class ItemEstimator:
    """Fan one item out to every tool and wait for all of them to settle."""

    def __init__(
        self,
        tools: Mapping[str, AnsweringTool],
        *,
        tool_timeout_seconds: float = 30.0,
    ) -> None:
        missing = [name for name in TOOL_NAMES if name not in tools]
        if missing:
            raise ValueError(f"Missing research tools: {missing}")
        self._tools = tools
        self._timeout = tool_timeout_seconds

    async def estimate(
        self,
        item: InventoryItem,
        location: UserLocation,
        currency: str = "USD",
    ) -> ItemEstimate:
        queries = build_tool_queries(item)
        outcomes = await asyncio.gather(
            *(
                self._call_tool(name, queries[name], location, currency)
                for name in TOOL_NAMES
            )
        )

        answers: Dict[str, ToolAnswer] = {}
        errors: Dict[str, ToolFailure] = {}
        for name, outcome in zip(TOOL_NAMES, outcomes):
            if isinstance(outcome, ToolFailure):
                errors[name] = outcome
            else:
                answers[name] = outcome

        if not errors:
            status = EstimateStatus.SUCCEEDED
        elif answers:
            status = EstimateStatus.PARTIALLY_FAILED
        else:
            status = EstimateStatus.FAILED

        return ItemEstimate(
            item_id=item.item_id,
            status=status,
            labor_findings=answers.get("labor"),
            material_findings=answers.get("material"),
            repair_findings=answers.get("repair"),
            cost=estimate_costs(item, answers),
            errors=errors,
        )

    async def _call_tool(
        self,
        name: str,
        query: Dict[str, str],
        location: UserLocation,
        currency: str,
    ) -> ToolAnswer | ToolFailure:
        failure: Optional[ToolFailure] = None
        try:
            return await asyncio.wait_for(
                self._tools[name].answer(query, location, currency),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            failure = ToolFailure(
                kind=ToolFailureKind.TIMEOUT,
                message=f"{name} lookup exceeded {self._timeout:g}s",
            )
        except ToolError as exc:
            failure = ToolFailure(kind=exc.kind, message=exc.message)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected failure in %s tool", name)
            failure = ToolFailure(
                kind=ToolFailureKind.UPSTREAM_ERROR,
                message=f"{type(exc).__name__}: {exc}",
            )
        logger.warning("Tool %s failed (%s): %s", name, failure.kind.value, failure.message)
        return failure


__all__ = ["ItemEstimator", "TOOL_NAMES", "build_tool_queries", "estimate_costs", "trade_for"]
