"""
Typed contracts for the analysis pipeline.

The models here are the boundary between free-form LLM output and the rest of
the application: every stage response is validated against one of them, and
the same models serialize the aggregate result for storage and the HTTP API.

Wire names are camelCase (``researchArea``, ``piComment``); Python attributes
are snake_case.  Both are accepted on input.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, get_origin

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


class Rating(str, Enum):
    """Three-level scale for feasibility and impact."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContractModel(BaseModel):
    """Base for all pipeline contracts: camelCase aliases, null lists read as empty."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _null_sequence_is_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None and info.field_name is not None:
            field = cls.model_fields[info.field_name]
            if get_origin(field.annotation) is list:
                return []
        return value

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Stage outputs
# ---------------------------------------------------------------------------

class ProjectProfile(ContractModel):
    """Structured summary of a project's research."""

    model_config = ConfigDict(frozen=True)

    research_area: str
    goals: List[str] = Field(default_factory=list)
    methods: List[str] = Field(default_factory=list)
    key_findings: List[str] = Field(default_factory=list)
    known_limitations: List[str] = Field(default_factory=list)
    open_questions: List[str] = Field(default_factory=list)


class ScoutedPaper(ContractModel):
    title: str
    summary: str
    relevance_reason: str
    limitations: str


class Gap(ContractModel):
    description: str
    why_it_matters: str
    what_seems_missing: str
    supporting_refs: List[str] = Field(default_factory=list)


class ProposedDirection(ContractModel):
    title: str
    hypothesis: str
    proposed_experiments: List[str] = Field(default_factory=list)
    required_data: List[str] = Field(default_factory=list)
    feasibility: Rating
    impact: Rating


class Critique(ContractModel):
    """The reviewer's part of a criticized direction."""

    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    suggested_improvements: List[str] = Field(default_factory=list)
    pi_comment: str


class CriticizedDirection(ProposedDirection):
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    suggested_improvements: List[str] = Field(default_factory=list)
    pi_comment: str

    @classmethod
    def merge(cls, direction: ProposedDirection, critique: Critique) -> "CriticizedDirection":
        """Combine *direction* and *critique*; direction fields are copied as-is."""
        return cls(**direction.model_dump(), **critique.model_dump())


# ---------------------------------------------------------------------------
# Response envelopes (the JSON object each stage must return)
# ---------------------------------------------------------------------------

class ScoutedPapersEnvelope(ContractModel):
    scouted_papers: List[ScoutedPaper] = Field(default_factory=list)


class GapsEnvelope(ContractModel):
    gaps: List[Gap] = Field(default_factory=list)


class DirectionsEnvelope(ContractModel):
    directions: List[ProposedDirection] = Field(default_factory=list)


class CritiquesEnvelope(ContractModel):
    criticized_directions: List[Critique] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

class AnalysisResult(ContractModel):
    """Output of a full pipeline run."""

    project_profile: ProjectProfile
    scouted_papers: List[ScoutedPaper] = Field(default_factory=list)
    gaps: List[Gap] = Field(default_factory=list)
    directions: List[ProposedDirection] = Field(default_factory=list)
    criticized_directions: List[CriticizedDirection] = Field(default_factory=list)

    def to_storage(self) -> Dict[str, str]:
        """One JSON text blob per field, keyed by column name."""
        wire = self.to_wire()
        return {
            name: json.dumps(wire[field.alias or name])
            for name, field in type(self).model_fields.items()
        }

    @classmethod
    def from_storage(cls, columns: Dict[str, str]) -> "AnalysisResult":
        """Inverse of :meth:`to_storage`."""
        return cls.model_validate(
            {name: json.loads(columns[name]) for name in cls.model_fields}
        )
