"""Disagreement report models.

A report is a list of atoms, each a single structural, declarative or
predictive difference between two model versions, plus an aggregate score
and the variable-alignment facts the comparison rested on.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from causalcore.alignment import VariableAlignment
from causalcore.counterfactual.models import ModelRef
from causalcore.graph import DagSpec
from causalcore.registry.models import Declaration


class AtomType(str, Enum):
    EDGE_PRESENCE = "edge_presence"
    EDGE_DIRECTION = "edge_direction"
    EDGE_SIGN = "edge_sign"
    ASSUMPTION = "assumption"
    CONFOUNDER = "confounder"
    INTERVENTION = "intervention"
    COUNTERFACTUAL = "counterfactual"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class EpistemicWeight(BaseModel):
    """How much of an atom's weight rests on data, mechanism, or bare assumption."""

    model_config = ConfigDict(frozen=True)

    data_grounded: float = Field(..., ge=0.0, le=1.0)
    mechanism_grounded: float = Field(..., ge=0.0, le=1.0)
    assumption_grounded: float = Field(..., ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _validate_total(self) -> "EpistemicWeight":
        total = self.data_grounded + self.mechanism_grounded + self.assumption_grounded
        if total > 1.0 + 1e-6:
            raise ValueError(f"epistemic weights must sum to <= 1 (got {total:.4f})")
        return self


class EdgeLocus(BaseModel):
    """Canonical (source, target) an atom refers to."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str = Field(
        ...,
        validation_alias=AliasChoices("source", "from"),
        serialization_alias="from",
    )
    target: str = Field(
        ...,
        validation_alias=AliasChoices("target", "to"),
        serialization_alias="to",
    )

    def describe(self) -> str:
        return f"{self.source}->{self.target}"


class DisagreementAtom(BaseModel):
    """One difference between the left and right model."""

    model_config = ConfigDict(frozen=True)

    type: AtomType
    severity: Severity
    left_value: str
    right_value: str
    variable: Optional[str] = None
    edge: Optional[EdgeLocus] = None
    reason: str
    epistemic_weight: EpistemicWeight

    @property
    def locus_key(self) -> Optional[str]:
        """``edge:A->B`` or ``variable:X``; used to acknowledge atoms in overrides."""
        if self.edge is not None:
            return f"edge:{self.edge.describe()}"
        if self.variable:
            return f"variable:{self.variable}"
        return None

    @property
    def locus_names(self) -> List[str]:
        if self.edge is not None:
            return [self.edge.source, self.edge.target]
        if self.variable:
            return [self.variable]
        return []

    def swapped(self) -> "DisagreementAtom":
        return self.model_copy(
            update={"left_value": self.right_value, "right_value": self.left_value}
        )


class AlignmentQuality(BaseModel):
    coverage: float = Field(..., ge=0.0, le=1.0)
    threshold: float = Field(..., ge=0.0, le=1.0)
    cross_domain: bool = False

    @property
    def below_threshold(self) -> bool:
        return self.coverage < self.threshold


class DisagreementReport(BaseModel):
    """Aggregate result of comparing two model versions."""

    score: float = Field(..., ge=0.0, le=1.0)
    summary: str
    atoms: List[DisagreementAtom] = Field(default_factory=list)
    aligned_variables: List[VariableAlignment] = Field(default_factory=list)
    unknown_variables: List[str] = Field(default_factory=list)
    alignment_quality: AlignmentQuality
    outcome_var: Optional[str] = None
    left_ref: Optional[ModelRef] = None
    right_ref: Optional[ModelRef] = None

    def count_by_severity(self) -> Dict[Severity, int]:
        counts = {severity: 0 for severity in Severity}
        for atom in self.atoms:
            counts[atom.severity] += 1
        return counts

    def atoms_with_severity(self, severity: Severity) -> List[DisagreementAtom]:
        return [atom for atom in self.atoms if atom.severity == severity]

    def swapped(self) -> "DisagreementReport":
        """Same report seen from the other side."""
        return self.model_copy(
            update={
                "atoms": [atom.swapped() for atom in self.atoms],
                "left_ref": self.right_ref,
                "right_ref": self.left_ref,
            }
        )


class ModelReference(BaseModel):
    """Registry coordinates; version defaults to the current one."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_key: str = Field(..., validation_alias=AliasChoices("model_key", "modelKey"))
    version: Optional[str] = None


class InlineSCMSpec(BaseModel):
    """A model version supplied directly instead of through the registry."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())

    model_key: str = Field(
        default="inline", validation_alias=AliasChoices("model_key", "modelKey")
    )
    version: str = "inline"
    domain: str = "inline"
    dag: DagSpec = Field(
        default_factory=DagSpec,
        validation_alias=AliasChoices("dag", "dag_json", "dagJson"),
    )
    assumptions: List[Declaration] = Field(
        default_factory=list,
        validation_alias=AliasChoices("assumptions", "assumptions_json", "assumptionsJson"),
    )
    confounders: List[Declaration] = Field(
        default_factory=list,
        validation_alias=AliasChoices("confounders", "confounders_json", "confoundersJson"),
    )
    validation: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("validation", "validation_json", "validationJson"),
    )


ComparisonSide = Union[ModelReference, InlineSCMSpec]
