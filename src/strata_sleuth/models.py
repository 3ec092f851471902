"""Pydantic data models for documents, batches and user profiles.

Report models (the shape the LLM returns) live in ``strata_sleuth.synthesis.models``.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

PDF_MIME_TYPE = "application/pdf"


# ── Documents ────────────────────────────────────────────────────────


class SourceDocument(BaseModel):
    """An uploaded document. Never mutated; splitting creates new instances."""

    model_config = ConfigDict(frozen=True)

    name: str
    mime_type: str = PDF_MIME_TYPE
    content: bytes = Field(repr=False)

    @property
    def is_pdf(self) -> bool:
        return self.mime_type.lower() == PDF_MIME_TYPE

    def to_base64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")

    def data_url(self) -> str:
        """``data:`` URL used to attach the document to a model request."""
        return f"data:{self.mime_type};base64,{self.to_base64()}"


class DocumentChunk(SourceDocument):
    """A source document restricted to the page range ``[start_page, end_page)``.

    Pages are 0-indexed. A document that was not split is represented by a
    single chunk with ``part_count == 1`` whose name and content equal the
    source's.
    """

    source_name: str
    start_page: int = Field(default=0, ge=0)
    end_page: int = Field(default=1, ge=1)
    part_index: int = Field(default=0, ge=0)
    part_count: int = Field(default=1, ge=1)

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page

    @property
    def is_split(self) -> bool:
        return self.part_count > 1

    @classmethod
    def whole(cls, document: SourceDocument, page_count: int = 1) -> DocumentChunk:
        """Wrap an unsplit document as a single chunk."""
        return cls(
            name=document.name,
            mime_type=document.mime_type,
            content=document.content,
            source_name=document.name,
            start_page=0,
            end_page=max(page_count, 1),
        )


class Batch(BaseModel):
    """An ordered group of chunks sent to the model in one request."""

    index: int = Field(ge=0)
    chunks: list[DocumentChunk] = Field(default_factory=list)

    @property
    def page_count(self) -> int:
        return sum(c.page_count for c in self.chunks)

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.chunks]


class AnalysisMode(str, Enum):
    """What a single model invocation is asked to do."""

    EXTRACTION = "extraction"
    SYNTHESIS = "synthesis"


# ── User profile ─────────────────────────────────────────────────────


class Persona(str, Enum):
    OCCUPIER = "occupier"
    INVESTOR = "investor"


def _require_numeric(value: str) -> str:
    value = value.strip()
    if value:
        try:
            float(value)
        except ValueError:
            raise ValueError(f"expected a numeric string, got {value!r}") from None
    return value


NumericStr = Annotated[str, AfterValidator(_require_numeric)]


class _ProfileModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class OccupierProfile(_ProfileModel):
    """Owner/occupier lifestyle and financing inputs."""

    pets: str = ""
    hobbies: str = ""
    balcony_drying: bool = False
    soundproofing_needs: str = ""
    sleeping_habits: str = "Average Sleeper"
    has_mortgage: bool = False
    loan_size: NumericStr = "500000"
    interest_rate: NumericStr = "6.1"
    property_value: NumericStr = "850000"


class InvestorProfile(_ProfileModel):
    """Investor yield and financing inputs."""

    expected_rental_yield: NumericStr = "4.5"
    loan_size: NumericStr = "400000"
    airbnb: bool = False
    interest_rate: NumericStr = "6.2"
    property_value: NumericStr = "800000"

    def required_weekly_rent(self) -> Optional[int]:
        """Weekly rent needed to hit the target gross yield, rounded to whole dollars."""
        if not self.property_value or not self.expected_rental_yield:
            return None
        annual = float(self.property_value) * float(self.expected_rental_yield) / 100
        return round(annual / 52)


class UserProfile(_ProfileModel):
    """Tagged union over persona: only the active variant is kept.

    Input may carry both variants (as a form would); the inactive one is
    dropped during validation so it can never be consulted.
    """

    persona: Persona
    occupier: Optional[OccupierProfile] = None
    investor: Optional[InvestorProfile] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_inactive_variant(cls, data: Any) -> Any:
        if isinstance(data, dict):
            persona = data.get("persona")
            persona = persona.value if isinstance(persona, Persona) else persona
            inactive = "investor" if persona == Persona.OCCUPIER.value else "occupier"
            if persona in (Persona.OCCUPIER.value, Persona.INVESTOR.value):
                data = {k: v for k, v in data.items() if k != inactive}
        return data

    @model_validator(mode="after")
    def _require_active_variant(self) -> UserProfile:
        if self.active is None:
            raise ValueError(f"profile for persona {self.persona.value!r} is missing")
        return self

    @property
    def active(self) -> OccupierProfile | InvestorProfile | None:
        return self.occupier if self.persona is Persona.OCCUPIER else self.investor

    @classmethod
    def default_for(cls, persona: Persona | str) -> UserProfile:
        persona = Persona(persona)
        if persona is Persona.OCCUPIER:
            return cls(persona=persona, occupier=OccupierProfile())
        return cls(persona=persona, investor=InvestorProfile())

    def describe(self) -> str:
        """Profile description handed to the model: persona plus its own fields."""
        active = self.active
        payload: dict[str, Any] = {"persona": self.persona.value}
        if active is not None:
            payload[self.persona.value] = active.model_dump(by_alias=True)
        return json.dumps(payload)


@dataclass(frozen=True)
class SynthesisInput:
    """Serialized partial reports for a synthesis-mode call."""

    payload: str
    report_count: int
