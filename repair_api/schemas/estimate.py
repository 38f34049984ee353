"""
Pydantic models for estimate requests, tool answers and estimate responses.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    """Accept camelCase or snake_case input and serialize camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ItemCondition(str, Enum):
    POOR = "Poor"
    FAIR = "Fair"
    GOOD = "Good"
    EXCELLENT = "Excellent"


class EstimateStatus(str, Enum):
    SUCCEEDED = "Succeeded"
    PARTIALLY_FAILED = "PartiallyFailed"
    FAILED = "Failed"


class ToolFailureKind(str, Enum):
    TIMEOUT = "Timeout"
    UPSTREAM_ERROR = "UpstreamError"
    INVALID_RESPONSE = "InvalidResponse"


class InventoryItem(_WireModel):
    """A single inventoried item to be priced."""

    item_id: str = Field(..., min_length=1, description="Identifier unique within a request.")
    item_name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, description="Trade tag, e.g. plumbing.")
    current_condition: ItemCondition
    location: str = Field("", description="Placement within the property.")
    original_cost: float = Field(..., ge=0)

    @field_validator("current_condition", mode="before")
    def _normalize_condition(cls, value: object) -> object:
        """Match conditions case-insensitively (``poor`` -> ``Poor``)."""
        if isinstance(value, str):
            return value.strip().capitalize()
        return value


class UserLocation(_WireModel):
    """Where the work happens; localizes every research query."""

    city: str = Field(..., min_length=1)
    region: str = Field(..., min_length=1)
    country: str = Field("US", min_length=2, max_length=2)

    @field_validator("city", "region", mode="after")
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    def label(self) -> str:
        return f"{self.city}, {self.region}"


class EstimateRequest(_WireModel):
    """Incoming payload for a batch estimate."""

    inventory_items: List[InventoryItem] = Field(..., min_length=1)
    user_location: UserLocation
    currency: str = Field("USD", min_length=3, max_length=3)

    @field_validator("currency", mode="after")
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _unique_item_ids(self) -> "EstimateRequest":
        seen: set[str] = set()
        for item in self.inventory_items:
            if item.item_id in seen:
                raise ValueError(f"Duplicate itemId: {item.item_id}")
            seen.add(item.item_id)
        return self


class SearchSource(_WireModel):
    title: Optional[str] = None
    link: Optional[str] = None
    snippet: Optional[str] = None


class ToolAnswer(_WireModel):
    """Synthesized research answer returned by one tool."""

    tool: str
    model: str
    summary: str
    sources: List[SearchSource] = Field(default_factory=list)
    figures: List[float] = Field(
        default_factory=list,
        description="Currency amounts quoted in the summary, in order of appearance.",
    )


class ToolFailure(_WireModel):
    kind: ToolFailureKind
    message: str


class RecommendedAction(str, Enum):
    FIX = "Fix"
    REPLACE = "Replace"


class CostBreakdown(_WireModel):
    """Labor plus parts for one course of action."""

    labor_hours: float = Field(..., ge=0)
    labor_rate: float = Field(..., ge=0)
    parts_cost: float = Field(..., ge=0)
    total_cost: float = Field(..., ge=0)

    @property
    def labor_cost(self) -> float:
        return round(self.labor_hours * self.labor_rate, 2)


class CostEstimate(_WireModel):
    """Fix and replace costs derived from the tool answers for one item."""

    fix: Optional[CostBreakdown] = None
    replace: Optional[CostBreakdown] = None
    recommended_action: RecommendedAction

    @property
    def recommended(self) -> Optional[CostBreakdown]:
        if self.recommended_action is RecommendedAction.FIX:
            return self.fix
        return self.replace

    @model_validator(mode="after")
    def _recommended_is_priced(self) -> "CostEstimate":
        if self.recommended is None:
            raise ValueError(f"{self.recommended_action.value} option has no cost breakdown")
        return self


class ItemEstimate(_WireModel):
    """Per-item aggregation of up to three tool answers."""

    item_id: str
    status: EstimateStatus
    labor_findings: Optional[ToolAnswer] = None
    material_findings: Optional[ToolAnswer] = None
    repair_findings: Optional[ToolAnswer] = None
    cost: Optional[CostEstimate] = Field(
        None,
        description=(
            "Absent when no labor rate was found or both material and repair "
            "answers are missing."
        ),
    )
    errors: Dict[str, ToolFailure] = Field(default_factory=dict)


class EstimateSummary(_WireModel):
    """Batch totals over the items that carry a cost estimate."""

    total_fix_cost: float = 0.0
    total_replace_cost: float = 0.0
    total_recommended_cost: float = 0.0
    total_labor_cost: float = 0.0
    total_material_cost: float = 0.0
    items_to_repair: int = 0
    items_to_replace: int = 0
    items_without_cost: int = 0


class EstimateMetadata(_WireModel):
    estimate_date: datetime
    currency: str
    location: str


class EstimateResponse(_WireModel):
    """Response envelope for a batch estimate."""

    results: List[ItemEstimate] = Field(default_factory=list)
    summary: Optional[EstimateSummary] = None
    metadata: Optional[EstimateMetadata] = None
    rate_limited: bool = False
    retry_after_seconds: Optional[int] = None
    currency: Optional[str] = None
    is_store_ready: bool = Field(
        False,
        description="False when admission was decided by the process-local fallback.",
    )


class RateLimitedResponse(_WireModel):
    rate_limited: bool = True
    retry_after_seconds: int


class HealthResponse(_WireModel):
    status: str = "ok"
    is_store_ready: bool
    redis: str
