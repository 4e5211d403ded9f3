"""Counterfactual tracing over a causal graph.

- trace_counterfactual: do(X = x) with an observed world, recorded as a trace
- query_association / query_intervention: Rung 1 and Rung 2 estimands
- build_trace_ref: Pointer to a persisted trace
"""

from causalcore.counterfactual.models import (
    AssociationQueryResult,
    Computation,
    ComputationMethod,
    CounterfactualQuery,
    CounterfactualResult,
    CounterfactualTrace,
    CounterfactualTraceRef,
    Intervention,
    InterventionQueryResult,
    ModelRef,
    Uncertainty,
)
from causalcore.counterfactual.tracer import (
    Propagation,
    assess_uncertainty,
    build_trace_path,
    build_trace_ref,
    propagate_intervention,
    query_association,
    query_intervention,
    sanitize_observed_world,
    trace_counterfactual,
)

__all__ = [
    "AssociationQueryResult",
    "Computation",
    "ComputationMethod",
    "CounterfactualQuery",
    "CounterfactualResult",
    "CounterfactualTrace",
    "CounterfactualTraceRef",
    "Intervention",
    "InterventionQueryResult",
    "ModelRef",
    "Propagation",
    "Uncertainty",
    "assess_uncertainty",
    "build_trace_path",
    "build_trace_ref",
    "propagate_intervention",
    "query_association",
    "query_intervention",
    "sanitize_observed_world",
    "trace_counterfactual",
]
