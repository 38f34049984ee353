#!/usr/bin/env python
"""Run a single inventory item through the research tools from the shell.

Useful for checking model and search configuration without going through the
API, its keys or its rate limits::

    python -m scripts.estimate_item "Water heater" --category plumbing \
        --condition Poor --cost 800 --city Seattle --region WA
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from repair_api.clients import GeminiClient, WebSearchClient  # noqa: E402
from repair_api.core.config import get_settings  # noqa: E402
from repair_api.core.logging import configure_logging  # noqa: E402
from repair_api.schemas import InventoryItem, ItemEstimate, UserLocation  # noqa: E402
from repair_api.services import ItemEstimator, build_research_tools  # noqa: E402


def _print_estimate(estimate: ItemEstimate) -> None:
    print(f"{estimate.item_id}: {estimate.status.value}\n")
    for label, answer in (
        ("Labor", estimate.labor_findings),
        ("Material", estimate.material_findings),
        ("Repair", estimate.repair_findings),
    ):
        if answer is None:
            continue
        print(f"{label} ({answer.model}):")
        print(answer.summary)
        if answer.figures:
            print(f"  figures: {', '.join(f'{value:g}' for value in answer.figures)}")
        for source in answer.sources:
            print(f"  - {source.title}: {source.link}")
        print()
    for name, failure in estimate.errors.items():
        print(f"{name} failed ({failure.kind.value}): {failure.message}")


async def run_once(args: argparse.Namespace) -> int:
    settings = get_settings()
    gemini = GeminiClient(settings.gemini)
    web_search = (
        WebSearchClient(api_key=settings.serpapi_api_key)
        if settings.serpapi_api_key
        else None
    )
    estimator = ItemEstimator(
        build_research_tools(gemini, web_search),
        tool_timeout_seconds=args.timeout or settings.estimator.tool_timeout_seconds,
    )
    item = InventoryItem(
        item_id=args.item_id,
        item_name=args.item_name,
        category=args.category,
        current_condition=args.condition,
        location=args.location,
        original_cost=args.cost,
    )
    location = UserLocation(city=args.city, region=args.region)
    estimate = await estimator.estimate(item, location, args.currency.upper())
    if args.json:
        print(estimate.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    else:
        _print_estimate(estimate)
    return 0 if estimate.errors == {} else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Research labor, material and repair steps for one item."
    )
    parser.add_argument("item_name", help="Name of the item, e.g. 'Water heater'.")
    parser.add_argument("--item-id", default="cli-1")
    parser.add_argument("--category", required=True, help="Trade tag, e.g. plumbing.")
    parser.add_argument(
        "--condition",
        default="Fair",
        choices=["Poor", "Fair", "Good", "Excellent"],
    )
    parser.add_argument("--location", default="", help="Placement in the property.")
    parser.add_argument("--cost", type=float, default=0.0, help="Original cost.")
    parser.add_argument("--city", required=True)
    parser.add_argument("--region", required=True)
    parser.add_argument("--currency", default="USD")
    parser.add_argument("--timeout", type=float, default=None, help="Per-tool timeout.")
    parser.add_argument("--json", action="store_true", help="Print the raw estimate JSON.")
    parser.add_argument("--log-level", default="WARNING")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return asyncio.run(run_once(args))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
