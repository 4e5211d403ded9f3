"""
Causal Autopsy Engine.

Explains a declared failure against a causal graph:

1. Resolve the failed outcome node (declared, or inferred from node names)
2. Score every ancestor of the outcome by structural necessity: the share
   of source-to-outcome paths that pass through it. A node on every path is
   a cut vertex and scores 1.0.
3. Keep ancestors at or above the necessity threshold as root causes,
   highest score first and closer to the outcome first on ties
4. Flag declared assumptions that mention a root cause
5. Emit one prevention action per root cause: intervene on the first,
   monitor the last, validate the ones between
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from causalcore.autopsy.models import AutopsyReport, FailureEvent, NecessityScore
from causalcore.config import AutopsyConfig, GraphConfig
from causalcore.counterfactual import ModelRef
from causalcore.errors import InvalidClaim, ModelNotFound
from causalcore.graph import CausalGraph, NodeKind, normalize_token
from causalcore.persistence import PersistenceSink, persist_best_effort
from causalcore.registry import ModelRegistry, ResolvedModelVersion

logger = logging.getLogger(__name__)


class AutopsyEngine:
    """Post-incident root-cause analysis over a causal graph.

    Example:
        >>> graph = CausalGraph.hydrate(
        ...     ["A", "B", "C"], [{"from": "A", "to": "B"}, {"from": "B", "to": "C"}]
        ... )
        >>> report = AutopsyEngine().run(graph, FailureEvent(observed_outcome="C"))
        >>> report.root_causes
        ['B', 'A']
    """

    def __init__(
        self,
        config: Optional[AutopsyConfig] = None,
        sink: Optional[PersistenceSink] = None,
    ):
        self.config = config or AutopsyConfig()
        self.sink = sink

    def run(
        self,
        graph: CausalGraph,
        failure_event: Optional[FailureEvent] = None,
        model_ref: Optional[ModelRef] = None,
        assumptions: Sequence[str] = (),
    ) -> AutopsyReport:
        """Produce an autopsy report for a failure event.

        Raises:
            InvalidClaim: Declared outcome is not a node of the graph
        """
        failure_event = failure_event or FailureEvent()
        outcome = self.resolve_outcome(graph, failure_event)

        scores = self.necessity_scores(graph, outcome)
        ranked = sorted(
            scores,
            key=lambda item: (
                -item.score,
                item.distance if item.distance is not None else len(graph),
                item.factor,
            ),
        )
        root_causes = [
            item.factor for item in ranked if item.score >= self.config.necessity_threshold
        ]

        report = AutopsyReport(
            model_ref=model_ref,
            outcome=outcome,
            root_causes=root_causes,
            symptoms=list(failure_event.observed_actions) + list(failure_event.observed_symptoms),
            failed_assumptions=failed_assumptions(assumptions, root_causes),
            necessity_scores=ranked,
            prevention_plan=prevention_plan(root_causes, outcome),
        )

        logger.info(
            f"Autopsy of {outcome}: {len(root_causes)} root cause(s) from "
            f"{len(scores)} candidate(s)"
        )
        if self.sink is not None:
            persist_best_effort(self.sink.record_autopsy, report, description="autopsy report")
        return report

    def run_for_model(
        self,
        registry: ModelRegistry,
        failure_event: Optional[FailureEvent] = None,
        model_key: Optional[str] = None,
        domain: Optional[str] = None,
        version: Optional[str] = None,
        graph_config: Optional[GraphConfig] = None,
    ) -> AutopsyReport:
        """Resolve a model from the registry and run the autopsy on it.

        Lookup order: ``model_key`` (at ``version``), then the current model
        of ``domain``, then ``model_key`` treated as a domain.

        Raises:
            InvalidClaim: Neither model_key nor domain given
            ModelNotFound: No model matches
        """
        lookup = (model_key or "").strip() or (domain or "").strip()
        if not lookup:
            raise InvalidClaim("Autopsy requires a model key or domain")

        resolved: Optional[ResolvedModelVersion] = None
        if model_key:
            try:
                resolved = registry.get_model_version(model_key, version)
            except ModelNotFound:
                resolved = None
        if resolved is None and domain:
            resolved = registry.get_current_model_by_domain(domain)
        if resolved is None and model_key:
            resolved = registry.get_current_model_by_domain(model_key)
        if resolved is None:
            raise ModelNotFound(lookup, version)

        return self.run(
            resolved.version.build_graph(graph_config),
            failure_event=failure_event,
            model_ref=resolved.ref,
            assumptions=resolved.version.assumption_list(),
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def resolve_outcome(self, graph: CausalGraph, failure_event: FailureEvent) -> str:
        if failure_event.observed_outcome:
            resolved = graph.resolve(failure_event.observed_outcome)
            if resolved is None:
                raise InvalidClaim(
                    f"Failure outcome '{failure_event.observed_outcome}' is not a node of the graph"
                )
            return resolved
        return infer_outcome(graph, self.config.outcome_hints)

    def necessity_scores(self, graph: CausalGraph, outcome: str) -> List[NecessityScore]:
        candidates = graph.ancestors_of(outcome)
        if not candidates:
            logger.warning(f"Outcome {outcome} has no ancestors; nothing to score")
            return []

        paths = list(_source_paths(graph, outcome, _sources(graph, candidates)))
        through: Counter = Counter()
        distance: Dict[str, int] = {}
        for path in paths:
            hops = len(path) - 1
            for index, node in enumerate(path[:-1]):
                through[node] += 1
                distance[node] = min(distance.get(node, hops), hops - index)

        total = len(paths)
        return [
            NecessityScore(
                factor=node,
                score=round(through[node] / total, 3) if total else 0.0,
                distance=distance.get(node),
            )
            for node in graph.topological_order()
            if node in candidates
        ]


def infer_outcome(graph: CausalGraph, hints: Iterable[str]) -> str:
    """First node whose name contains an outcome hint, else the last sink."""
    tokens = [normalize_token(hint) for hint in hints]
    for name in graph.node_names:
        normalized = normalize_token(name)
        if any(token and token in normalized for token in tokens):
            return name

    sinks = [name for name in graph.topological_order() if not graph.children(name)]
    if not sinks:
        raise InvalidClaim("Cannot infer a failure outcome from an empty graph")
    return sinks[-1]


def failed_assumptions(assumptions: Iterable[str], root_causes: Sequence[str]) -> List[str]:
    """Declared assumptions mentioning a root cause (normalized substring)."""
    tokens = [normalize_token(cause) for cause in root_causes]
    tokens = [token for token in tokens if token]
    flagged: List[str] = []
    for assumption in assumptions:
        normalized = normalize_token(assumption)
        if any(token in normalized for token in tokens) and assumption not in flagged:
            flagged.append(assumption)
    return flagged


def prevention_plan(root_causes: Sequence[str], outcome: str) -> List[str]:
    plan: List[str] = []
    last = len(root_causes) - 1
    for index, cause in enumerate(root_causes):
        if index == 0:
            action = (
                f"Intervene on {cause} with explicit do({cause}) trials and track "
                f"downstream effect on {outcome}."
            )
        elif index == last:
            action = f"Monitor {cause} and audit confounders on the {cause} -> {outcome} path."
        else:
            action = (
                f"Validate {cause} -> {outcome} mechanism with controlled comparisons "
                f"before acting on it."
            )
        plan.append(action)
    return plan


def _sources(graph: CausalGraph, ancestors: Iterable[str]) -> List[str]:
    """Declared exogenous ancestors, else parentless ancestors."""
    candidates = set(ancestors)
    ordered = [name for name in graph.topological_order() if name in candidates]
    declared = [name for name in ordered if graph.node(name).kind == NodeKind.EXOGENOUS]
    if declared:
        return declared
    return [name for name in ordered if not graph.parents(name)]


def _source_paths(graph: CausalGraph, outcome: str, sources: Iterable[str]):
    for source in sources:
        yield from graph.paths_between(source, outcome)
