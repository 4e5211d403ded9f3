"""
Counterfactual Tracer.

Answers "what would the outcome have been under do(X = x)?" by simplified
deterministic propagation over the declared graph:

1. Graph surgery: X is clamped to x and its incoming edges are ignored.
   The intervention delta is x minus the observed value of X (0 if unobserved).
2. Every simple directed path X -> ... -> Y is enumerated (capped).
3. Deltas flow in topological order over nodes on those paths. A node's
   delta is the sum, over its on-path parents, of
   sign * strength * sensitivity * parent_delta.
4. The outcome's delta is added to its observed value.

This is a structural approximation, not an SEM solver. Unknown edge signs
propagate in the positive direction and lower confidence instead.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from causalcore.config import CounterfactualConfig
from causalcore.errors import InvalidClaim
from causalcore.graph import CausalGraph, normalize_token
from causalcore.identifiability.gate import sanitize_list
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

logger = logging.getLogger(__name__)

TRACE_RETRIEVAL_PREFIX = "/scm/counterfactual-traces"


@dataclass
class Propagation:
    """Intermediate state of one intervention propagation."""

    paths: List[List[str]] = field(default_factory=list)
    deltas: Dict[str, float] = field(default_factory=dict)
    path_edges: Set[Tuple[str, str]] = field(default_factory=set)

    @property
    def has_path(self) -> bool:
        return bool(self.paths)


def sanitize_observed_world(observed: Optional[Mapping[str, object]]) -> Dict[str, float]:
    """Drop blank keys and non-finite or non-numeric values."""
    if not observed:
        return {}
    cleaned: Dict[str, float] = {}
    for key, value in observed.items():
        if not isinstance(key, str) or not key.strip():
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if not math.isfinite(value):
            continue
        cleaned[key.strip()] = float(value)
    return cleaned


def propagate_intervention(
    graph: CausalGraph,
    variable: str,
    outcome: str,
    intervention_delta: float,
    sensitivity: float = 1.0,
    max_paths: Optional[int] = None,
) -> Propagation:
    """Push an intervention delta along every directed path to the outcome.

    Args:
        graph: Hydrated causal graph
        variable: Intervened node (already resolved)
        outcome: Outcome node (already resolved)
        intervention_delta: Change applied at the intervened node
        sensitivity: Per-edge scaling factor
        max_paths: Path enumeration cap (defaults to the graph config)

    Returns:
        Propagation with enumerated paths and per-node deltas
    """
    paths = list(graph.paths_between(variable, outcome, max_paths=max_paths))
    propagation = Propagation(paths=paths, deltas={variable: intervention_delta})
    if not paths:
        return propagation

    on_path: Set[str] = set()
    for path in paths:
        on_path.update(path)
        propagation.path_edges.update(zip(path, path[1:]))

    for node in graph.topological_order():
        if node == variable or node not in on_path:
            continue
        total = 0.0
        for parent in graph.parents(node):
            if (parent, node) not in propagation.path_edges:
                continue
            parent_delta = propagation.deltas.get(parent, 0.0)
            for edge in graph.edges_between(parent, node):
                total += edge.sign_factor * edge.effective_strength * sensitivity * parent_delta
        propagation.deltas[node] = total

    return propagation


def assess_uncertainty(graph: CausalGraph, propagation: Propagation) -> Uncertainty:
    """High without a path; low only when every path edge is fully declared."""
    if not propagation.has_path:
        return Uncertainty.HIGH
    for source, target in propagation.path_edges:
        for edge in graph.edges_between(source, target):
            if not (edge.has_declared_sign and edge.has_mechanism):
                return Uncertainty.MEDIUM
    return Uncertainty.LOW


def trace_counterfactual(
    graph: CausalGraph,
    intervention: Intervention,
    outcome: str,
    observed_world: Optional[Mapping[str, object]] = None,
    model_ref: Optional[ModelRef] = None,
    assumptions: Optional[Sequence[str]] = None,
    adjustment_set: Optional[Sequence[str]] = None,
    config: Optional[CounterfactualConfig] = None,
    trace_id: Optional[str] = None,
) -> CounterfactualTrace:
    """Compute a counterfactual outcome and record how it was derived.

    Args:
        graph: Hydrated causal graph
        intervention: do(variable = value)
        outcome: Outcome variable name
        observed_world: Factual variable values
        model_ref: Model version the graph was hydrated from
        assumptions: Declared assumptions carried into the trace
        adjustment_set: Controlled variables carried into the trace
        config: Propagation settings
        trace_id: Explicit trace id (random UUID otherwise)

    Returns:
        Frozen CounterfactualTrace

    Raises:
        InvalidClaim: Blank, unknown or identical intervention/outcome
    """
    config = config or CounterfactualConfig()
    variable_name, outcome_name = _resolve_query(graph, intervention.variable, outcome)
    if not math.isfinite(intervention.value):
        raise InvalidClaim(
            f"Intervention value for '{variable_name}' must be finite",
            details={"variable": variable_name},
        )
    observed = sanitize_observed_world(observed_world)

    observed_value = _lookup_observed(observed, variable_name)
    intervention_delta = intervention.value - observed_value

    propagation = propagate_intervention(
        graph,
        variable_name,
        outcome_name,
        intervention_delta,
        sensitivity=config.sensitivity,
    )
    uncertainty = assess_uncertainty(graph, propagation)

    actual = round(_lookup_observed(observed, outcome_name), config.precision)
    if propagation.has_path:
        outcome_delta = propagation.deltas.get(outcome_name, 0.0)
    else:
        outcome_delta = 0.0
    counterfactual = round(actual + outcome_delta, config.precision)
    delta = round(counterfactual - actual, config.precision)

    trace = CounterfactualTrace(
        trace_id=trace_id or str(uuid.uuid4()),
        model_ref=model_ref or ModelRef(model_key="inline", version="inline"),
        query=CounterfactualQuery(
            intervention=Intervention(variable=variable_name, value=intervention.value),
            outcome=outcome_name,
            observed_world=observed,
        ),
        assumptions=sanitize_list(assumptions),
        adjustment_set=sanitize_list(adjustment_set),
        computation=Computation(
            method=ComputationMethod.DETERMINISTIC_GRAPH_DIFF,
            affected_paths=[" -> ".join(path) for path in propagation.paths],
            uncertainty=uncertainty,
        ),
        result=CounterfactualResult(
            actual_outcome=actual,
            counterfactual_outcome=counterfactual,
            delta=delta,
        ),
    )

    logger.info(
        f"Counterfactual do({variable_name}={intervention.value}) on {outcome_name}: "
        f"delta={delta} paths={len(propagation.paths)} uncertainty={uncertainty.value}"
    )
    return trace


def build_trace_path(trace_id: str) -> str:
    return f"{TRACE_RETRIEVAL_PREFIX}/{trace_id}"


def build_trace_ref(trace: CounterfactualTrace, persisted: bool) -> CounterfactualTraceRef:
    """Summarize a trace for API responses."""
    return CounterfactualTraceRef(
        trace_id=trace.trace_id,
        method=trace.computation.method,
        uncertainty=trace.computation.uncertainty,
        retrieval_path=build_trace_path(trace.trace_id),
        persisted=persisted,
    )


def query_association(
    graph: CausalGraph,
    cause: str,
    effect: str,
    observed: Optional[Mapping[str, object]] = None,
) -> AssociationQueryResult:
    """Observational estimate P(effect | cause) along the first directed path.

    Conservative by construction: the result never implies intervention
    semantics.
    """
    cause_name, effect_name = _resolve_query(graph, cause, effect)
    values = sanitize_observed_world(observed)

    path = next(graph.paths_between(cause_name, effect_name, max_paths=1), [])
    weight = 0.0
    if path:
        weight = 1.0
        for source, target in zip(path, path[1:]):
            edge = graph.edges_between(source, target)[0]
            weight *= edge.sign_factor * edge.effective_strength

    value = round(_lookup_observed(values, cause_name) * weight, 4)
    return AssociationQueryResult(
        estimand=f"P({effect_name} | {cause_name})",
        value=value,
        path=path,
        note="Observational estimate only. Use do() operator for causal intervention claims.",
    )


def query_intervention(
    graph: CausalGraph,
    variable: str,
    value: float,
    outcome: str,
    baseline: Optional[Mapping[str, object]] = None,
    config: Optional[CounterfactualConfig] = None,
) -> InterventionQueryResult:
    """Interventional estimate P(outcome | do(variable = value))."""
    config = config or CounterfactualConfig()
    variable_name, outcome_name = _resolve_query(graph, variable, outcome)
    values = sanitize_observed_world(baseline)

    propagation = propagate_intervention(
        graph,
        variable_name,
        outcome_name,
        value - _lookup_observed(values, variable_name),
        sensitivity=config.sensitivity,
    )
    baseline_outcome = round(_lookup_observed(values, outcome_name), config.precision)
    delta = round(propagation.deltas.get(outcome_name, 0.0), config.precision)
    affected = [name for name in propagation.deltas if name != variable_name]

    return InterventionQueryResult(
        estimand=f"P({outcome_name} | do({variable_name}={value}))",
        baseline_outcome=baseline_outcome,
        intervened_outcome=round(baseline_outcome + delta, config.precision),
        delta=delta,
        affected_nodes=affected,
    )


def _resolve_query(graph: CausalGraph, variable: str, outcome: str) -> Tuple[str, str]:
    variable = variable.strip() if isinstance(variable, str) else ""
    outcome = outcome.strip() if isinstance(outcome, str) else ""
    if not variable or not outcome:
        raise InvalidClaim(
            "Intervention variable and outcome are required",
            details={"variable": variable, "outcome": outcome},
        )
    variable_name = graph.require(variable)
    outcome_name = graph.require(outcome)
    if variable_name == outcome_name:
        raise InvalidClaim(
            f"Intervention variable and outcome must differ (both '{variable_name}')",
            details={"variable": variable_name},
        )
    return variable_name, outcome_name


def _lookup_observed(observed: Mapping[str, float], name: str) -> float:
    if name in observed:
        return observed[name]
    key = normalize_token(name)
    for candidate, value in observed.items():
        if normalize_token(candidate) == key:
            return value
    return 0.0
