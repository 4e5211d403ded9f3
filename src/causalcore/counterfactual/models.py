"""Counterfactual trace models.

Traces are immutable records of one counterfactual query: the model version
it ran against, the query itself, how it was computed and the result. They
serialize with camelCase keys (``traceId``, ``modelRef`` ...) when dumped
by alias.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ComputationMethod(str, Enum):
    """How a counterfactual outcome was computed."""

    DETERMINISTIC_GRAPH_DIFF = "deterministic_graph_diff"


class Uncertainty(str, Enum):
    """Qualitative uncertainty attached to a trace."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class _TraceModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        protected_namespaces=(),
    )


class ModelRef(_TraceModel):
    """Registry coordinates of the model version a computation used."""

    model_key: str
    version: str

    def label(self) -> str:
        return f"{self.model_key}@{self.version}"


class Intervention(_TraceModel):
    """do(variable = value)."""

    variable: str
    value: float


class CounterfactualQuery(_TraceModel):
    intervention: Intervention
    outcome: str
    observed_world: Dict[str, float] = Field(default_factory=dict)


class Computation(_TraceModel):
    method: ComputationMethod = ComputationMethod.DETERMINISTIC_GRAPH_DIFF
    affected_paths: List[str] = Field(default_factory=list)
    uncertainty: Uncertainty = Uncertainty.MEDIUM


class CounterfactualResult(_TraceModel):
    actual_outcome: float
    counterfactual_outcome: float
    delta: float


class CounterfactualTrace(_TraceModel):
    """Immutable record of one counterfactual query and its result."""

    trace_id: str
    model_ref: ModelRef
    query: CounterfactualQuery
    assumptions: List[str] = Field(default_factory=list)
    adjustment_set: List[str] = Field(default_factory=list)
    computation: Computation
    result: CounterfactualResult

    @property
    def has_mechanism_path(self) -> bool:
        return bool(self.computation.affected_paths)


class CounterfactualTraceRef(_TraceModel):
    """Lightweight pointer returned to callers alongside a persisted trace."""

    trace_id: str
    method: ComputationMethod
    uncertainty: Uncertainty
    retrieval_path: str
    persisted: bool = False


class AssociationQueryResult(_TraceModel):
    """Observational estimate P(effect | cause). Carries no causal force."""

    estimand: str
    value: float
    path: List[str] = Field(default_factory=list)
    note: str = ""


class InterventionQueryResult(_TraceModel):
    """Interventional estimate P(outcome | do(variable = value))."""

    estimand: str
    baseline_outcome: float
    intervened_outcome: float
    delta: float
    affected_nodes: List[str] = Field(default_factory=list)
