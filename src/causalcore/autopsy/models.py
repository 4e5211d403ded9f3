"""Autopsy data models."""

from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from causalcore.counterfactual.models import ModelRef


class FailureEvent(BaseModel):
    """A declared failure to explain."""

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    observed_outcome: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("observed_outcome", "observedOutcome", "outcome"),
    )
    observed_actions: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("observed_actions", "observedActions"),
    )
    observed_symptoms: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("observed_symptoms", "observedSymptoms", "symptoms"),
    )
    timeline: List[str] = Field(default_factory=list)

    @field_validator("observed_outcome")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class NecessityScore(BaseModel):
    factor: str
    score: float = Field(..., ge=0.0, le=1.0)
    distance: Optional[int] = Field(
        default=None, description="Shortest directed hop count to the outcome"
    )


class AutopsyReport(BaseModel):
    """Root causes, failed assumptions and an ordered prevention plan."""

    model_config = ConfigDict(protected_namespaces=())

    model_ref: Optional[ModelRef] = None
    outcome: str
    root_causes: List[str] = Field(default_factory=list)
    symptoms: List[str] = Field(default_factory=list)
    failed_assumptions: List[str] = Field(default_factory=list)
    necessity_scores: List[NecessityScore] = Field(default_factory=list)
    prevention_plan: List[str] = Field(default_factory=list)
