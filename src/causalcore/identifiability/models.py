"""Identifiability result models.

The allowed-output-class ladder is the safety contract of the gate: a claim
is never reported with stronger epistemic force than its control set
justifies.
"""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class AllowedOutputClass(str, Enum):
    """Strongest claim class a caller may emit."""

    ASSOCIATION_ONLY = "association_only"
    """No controls supplied: only observational language is allowed."""

    INTERVENTION_INFERRED = "intervention_inferred"
    """Some controls supplied but required confounders are missing."""

    INTERVENTION_SUPPORTED = "intervention_supported"
    """All required confounders are in the adjustment set."""


class IdentifiabilityResult(BaseModel):
    """Backdoor-style identifiability verdict for (treatment, outcome)."""

    identifiable: bool
    required_confounders: List[str] = Field(default_factory=list)
    adjustment_set: List[str] = Field(default_factory=list)
    missing_confounders: List[str] = Field(default_factory=list)
    rejected_confounders: List[str] = Field(
        default_factory=list,
        description="Caller-declared confounders that failed the common-cause test",
    )
    note: str = ""


class InterventionGateResult(BaseModel):
    """Identifiability verdict wrapped into an allowed-output-class decision."""

    allowed: bool
    allowed_output_class: AllowedOutputClass
    rationale: str
    identifiability: IdentifiabilityResult


class ConfounderCompletenessResult(BaseModel):
    """Coverage of a provided confounder list against a required list."""

    complete: bool
    coverage: float = Field(..., ge=0.0, le=1.0)
    missing: List[str] = Field(default_factory=list)
    extras: List[str] = Field(default_factory=list)
