"""
Research tools that answer one pricing or how-to question about an item.

Labor, material and repair-instruction lookups share a single adapter; a
``ToolSpec`` supplies the query fields, the prompt templates and the model
profile. Each call is independent: search (when configured), then synthesize.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import httpx

from repair_api.clients import GeminiClient, GeminiModelError, WebSearchClient
from repair_api.schemas import SearchSource, ToolAnswer, ToolFailureKind, UserLocation

logger = logging.getLogger(__name__)

_CURRENCY_CODES = "USD|CAD|EUR|GBP|AUD"
_AMOUNT = r"\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?"
_FIGURE_PATTERN = re.compile(
    rf"(?:[$€£]|\b(?:{_CURRENCY_CODES})\b)\s?(?P<pre>{_AMOUNT})"
    rf"|(?P<post>{_AMOUNT})\s?(?:{_CURRENCY_CODES})\b"
)
_HOURS_PATTERN = re.compile(
    r"(?<![\d.$€£])(?P<low>\d+(?:\.\d+)?)"
    r"(?:\s*(?:-|–|to)\s*(?P<high>\d+(?:\.\d+)?))?\s*(?:hours?|hrs?)\b",
    re.IGNORECASE,
)


class ToolError(Exception):
    """Raised when a research tool cannot produce an answer."""

    def __init__(self, kind: ToolFailureKind, tool: str, message: str) -> None:
        super().__init__(f"{tool}: {message}")
        self.kind = kind
        self.tool = tool
        self.message = message


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Static description of one research tool."""

    name: str
    fields: tuple[str, ...]
    search_template: str
    instruction_template: str
    profile: str = "quick"
    num_results: int = 5
    max_output_tokens: int = 512


LABOR_TOOL = ToolSpec(
    name="labor",
    fields=("work_type", "trade", "complexity"),
    search_template="{trade} hourly rates {work_type} {city} {region} {prior_year} {year}",
    instruction_template=(
        "Search for labor rates of {trade} for {work_type} ({complexity}) in "
        "{city}, {region}. Return the average hourly rate or a range in {currency} "
        "with sources, plus the typical number of hours for this job."
    ),
)

MATERIAL_TOOL = ToolSpec(
    name="material",
    fields=("item_type", "category", "quality_level"),
    search_template="{item_type} {category} {quality_level} price {city} {region} {prior_year} {year}",
    instruction_template=(
        "Find prices for {item_type} ({quality_level}) in {category} within "
        "{city}, {region}. Focus on common suppliers like Home Depot and Lowe's. "
        "Report prices in {currency} and name the supplier for each."
    ),
)

REPAIR_TOOL = ToolSpec(
    name="repair",
    fields=("item_description", "action_type", "issue_type"),
    search_template="how to {action_type} {item_description} {issue_type} step by step guide",
    instruction_template=(
        "Find detailed, professional instructions to {action_type} a "
        "{item_description} experiencing {issue_type}. Include all necessary "
        "materials and tools and an estimate of the time required. Ensure the "
        "steps are complete, practical and code-compliant in {city}, {region}."
    ),
    profile="deliberate",
    num_results=8,
    max_output_tokens=2048,
)


def extract_figures(text: str) -> List[float]:
    """Return currency amounts quoted in ``text`` in order of appearance."""
    figures: List[float] = []
    for match in _FIGURE_PATTERN.finditer(text):
        raw = match.group("pre") or match.group("post")
        figures.append(float(raw.replace(",", "")))
    return figures


def extract_hours(text: str) -> Optional[float]:
    """Return the first job duration in ``text``; ranges resolve to their midpoint."""
    match = _HOURS_PATTERN.search(text)
    if match is None:
        return None
    low = float(match.group("low"))
    high = float(match.group("high") or low)
    return (low + high) / 2


class ResearchTool:
    """Answer one typed question about an item via search plus synthesis."""

    def __init__(
        self,
        spec: ToolSpec,
        gemini_client: GeminiClient,
        web_search_client: Optional[WebSearchClient] = None,
    ) -> None:
        self.spec = spec
        self._gemini = gemini_client
        self._web_search = web_search_client

    @property
    def name(self) -> str:
        return self.spec.name

    async def answer(
        self,
        query: Mapping[str, str],
        location: UserLocation,
        currency: str = "USD",
    ) -> ToolAnswer:
        values = self._render_values(query, location, currency)
        search_query = self.spec.search_template.format(**values)
        instruction = self.spec.instruction_template.format(**values)

        results: List[Dict[str, Any]] = []
        if self._web_search is not None:
            try:
                results = await self._web_search.search(
                    search_query,
                    location=location.label(),
                    country=location.country,
                    num_results=self.spec.num_results,
                )
            except httpx.HTTPError as exc:
                raise ToolError(
                    ToolFailureKind.UPSTREAM_ERROR,
                    self.name,
                    f"web search failed: {exc}",
                ) from exc

        try:
            model_name, text = await self._gemini.research(
                instruction=instruction,
                query=search_query,
                profile=self.spec.profile,
                search_results=results,
                max_output_tokens=self.spec.max_output_tokens,
            )
        except GeminiModelError as exc:
            raise ToolError(
                ToolFailureKind.UPSTREAM_ERROR, self.name, str(exc)
            ) from exc

        summary = (text or "").strip()
        if not summary:
            raise ToolError(
                ToolFailureKind.INVALID_RESPONSE,
                self.name,
                "research model returned an empty answer",
            )

        logger.debug("Tool %s answered with %d sources", self.name, len(results))
        return ToolAnswer(
            tool=self.name,
            model=model_name,
            summary=summary,
            sources=[SearchSource(**result) for result in results],
            figures=extract_figures(summary),
        )

    def _render_values(
        self, query: Mapping[str, str], location: UserLocation, currency: str
    ) -> Dict[str, Any]:
        missing = [field for field in self.spec.fields if not query.get(field)]
        unexpected = sorted(set(query) - set(self.spec.fields))
        if missing or unexpected:
            raise ValueError(
                f"{self.name} query fields mismatch: missing={missing} "
                f"unexpected={unexpected}"
            )
        year = datetime.now(timezone.utc).year
        return {
            **{field: str(query[field]).strip() for field in self.spec.fields},
            "city": location.city,
            "region": location.region,
            "currency": currency,
            "year": year,
            "prior_year": year - 1,
        }


def build_research_tools(
    gemini_client: GeminiClient,
    web_search_client: Optional[WebSearchClient] = None,
) -> Dict[str, ResearchTool]:
    """Create the labor, material and repair tools keyed by name."""
    return {
        spec.name: ResearchTool(spec, gemini_client, web_search_client)
        for spec in (LABOR_TOOL, MATERIAL_TOOL, REPAIR_TOOL)
    }


__all__ = [
    "LABOR_TOOL",
    "MATERIAL_TOOL",
    "REPAIR_TOOL",
    "ResearchTool",
    "ToolError",
    "ToolSpec",
    "build_research_tools",
    "extract_figures",
    "extract_hours",
]
