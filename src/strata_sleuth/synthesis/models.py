"""Report models: the structured shape both extraction and synthesis return.

Field names are snake_case in Python and camelCase on the wire, matching the
schema the model is asked to fill. The model's structured-output guarantee is
advisory, so every model here tolerates missing optional data and ignores
unknown keys.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from strata_sleuth.models import Persona

MAX_TIMELINE_ENTRIES = 10
YIELD_FORECAST_YEARS = 5

Severity = Literal["low", "medium", "high", "critical"]

# Off-scale severities the model uses, mapped onto the four levels.
_SEVERITY_SYNONYMS = {
    "minor": "low",
    "negligible": "low",
    "moderate": "medium",
    "med": "medium",
    "major": "high",
    "severe": "high",
    "significant": "high",
    "extreme": "critical",
    "urgent": "critical",
}


class _ReportModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Citation(_ReportModel):
    """Where in the submitted documents a claim was found."""

    file_name: str = ""
    page_number: Optional[Union[int, str]] = None


class BriefingPoint(_ReportModel):
    content: str
    source: Optional[Citation] = None


class TimelineEvent(_ReportModel):
    year: int
    event: str
    cost: Union[float, str] = ""
    severity: Severity = "medium"
    description: str = ""
    resolution: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _lower_severity(cls, v: Any) -> str:
        """Fold any severity onto the four levels; unknown values become ``medium``."""
        if not isinstance(v, str):
            return "medium"
        v = v.strip().lower()
        if v in ("low", "medium", "high", "critical"):
            return v
        return _SEVERITY_SYNONYMS.get(v, "medium")


class LifestyleConflict(_ReportModel):
    bylaw: str
    conflict: str
    recommendation: str = ""


class FinancialProjectionRow(_ReportModel):
    year: int
    expected_cost: float
    fund_balance: float
    levy_impact: float
    yield_impact: Optional[float] = None
    total_monthly_ownership_cost: Optional[float] = None


class Amenity(_ReportModel):
    name: str
    condition: str = ""
    forecasted_maintenance_year: Optional[int] = None
    estimated_cost: Union[float, str] = ""


class RecommendedRent(_ReportModel):
    weekly: float
    annual: float
    justification: str = ""


class RentVsBuyYear(_ReportModel):
    year: int
    ownership_cost: float
    estimated_rent: float


class RentVsBuy(_ReportModel):
    """Occupier-only comparison of owning against renting an equivalent."""

    monthly_ownership_cost: float
    market_rent_equivalent: float
    ten_year_total_delta: float
    comparable_property_link: Optional[str] = None
    justification: str = ""
    yearly_projection: list[RentVsBuyYear] = Field(default_factory=list)


class InvestorWealthYear(_ReportModel):
    year: int
    property_value: float
    loan_balance: float
    equity: float
    net_cashflow: float


class InvestorWealth(_ReportModel):
    """Investor-only projection of equity and cashflow."""

    projected_property_value: float
    projected_equity: float
    cumulative_net_cashflow: float
    justification: str = ""
    yearly_projection: list[InvestorWealthYear] = Field(default_factory=list)


class FinalReport(_ReportModel):
    """The full 10-year forecast. Partial (per-batch) reports share this shape."""

    risk_score: float = Field(ge=0, le=100)
    briefing_points: list[BriefingPoint] = Field(
        validation_alias=AliasChoices("briefingPoints", "redTeamSummary", "briefing_points"),
        serialization_alias="briefingPoints",
    )
    timeline: list[TimelineEvent]
    lifestyle_conflicts: list[LifestyleConflict]
    financial_projection: list[FinancialProjectionRow] = Field(
        validation_alias=AliasChoices(
            "financialProjection", "financialWarGaming", "financial_projection"
        ),
        serialization_alias="financialProjection",
    )
    amenities: list[Amenity]
    recommended_rent: Optional[RecommendedRent] = None
    rent_vs_buy: Optional[RentVsBuy] = None
    investor_wealth: Optional[InvestorWealth] = None
    conclusion: str
    conclusion_source: Optional[Citation] = None

    @field_validator("risk_score", mode="before")
    @classmethod
    def _clamp_risk_score(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return min(max(v, 0), 100)
        return v

    def conformed_to(self, persona: Persona) -> FinalReport:
        """Return a copy that honours the report invariants for *persona*.

        - only the persona's financial sub-analysis is kept
        - the timeline is ordered by year and capped
        - financial rows past the yield forecast horizon lose ``yield_impact``
        """
        rows = sorted(self.financial_projection, key=lambda r: r.year)
        if rows:
            first_year = rows[0].year
            rows = [
                r.model_copy(update={"yield_impact": None})
                if r.year - first_year >= YIELD_FORECAST_YEARS
                else r
                for r in rows
            ]
        timeline = sorted(self.timeline, key=lambda e: e.year)[:MAX_TIMELINE_ENTRIES]

        return self.model_copy(
            update={
                "financial_projection": rows,
                "timeline": timeline,
                "rent_vs_buy": self.rent_vs_buy if persona is Persona.OCCUPIER else None,
                "investor_wealth": self.investor_wealth if persona is Persona.INVESTOR else None,
            }
        )

    def to_wire(self) -> dict[str, Any]:
        """camelCase JSON-compatible dict, omitting absent optional sections."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


PartialReport = FinalReport


def response_schema() -> dict[str, Any]:
    """JSON schema handed to the model as its output contract."""
    return FinalReport.model_json_schema(by_alias=True, mode="serialization")
