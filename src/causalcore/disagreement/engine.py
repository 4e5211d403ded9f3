"""
Causal Disagreement Engine.

Compares two SCM versions and explains where they disagree:

1. Align variable names of both graphs through a VariableOntology
2. Diff edge loci (presence, direction, sign) on canonical names
3. Diff declared assumptions and confounders
4. Trace a unit intervention on both graphs per requested variable and
   diff the predicted outcome shifts
5. Grade every atom by how close its locus sits to the outcome and score
   the report by severity-weighted atom count per aligned edge locus

Every input is read from one side or the other symmetrically, so swapping
left and right swaps atom values and leaves severities and the score
unchanged.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from causalcore.alignment import VariableOntology
from causalcore.config import CounterfactualConfig, DisagreementConfig, GraphConfig
from causalcore.counterfactual import Intervention, ModelRef, trace_counterfactual
from causalcore.disagreement.models import (
    SEVERITY_RANK,
    AlignmentQuality,
    AtomType,
    ComparisonSide,
    DisagreementAtom,
    DisagreementReport,
    EdgeLocus,
    EpistemicWeight,
    InlineSCMSpec,
    ModelReference,
    Severity,
)
from causalcore.errors import AlignmentAmbiguous, InvalidClaim
from causalcore.graph import CausalEdge, CausalGraph, normalize_token
from causalcore.identifiability import sanitize_list, structural_confounders
from causalcore.registry import ModelRegistry, SCMModelVersion

logger = logging.getLogger(__name__)

DATA_EVIDENCE_TAGS = frozenset(
    {
        "data",
        "rct",
        "experiment",
        "experimental",
        "observational",
        "cohort",
        "metaanalysis",
        "empirical",
    }
)

EdgeKey = Tuple[str, str]


@dataclass
class ResolvedSide:
    """One side of a comparison, hydrated and flattened."""

    ref: ModelRef
    domain: str
    graph: CausalGraph
    assumptions: List[str]
    confounders: List[str]
    evidence: float


class DisagreementEngine:
    """Structural and predictive diff of two SCM versions.

    Example:
        >>> engine = DisagreementEngine(registry=registry)
        >>> report = engine.compare(
        ...     ModelReference(model_key="smoking", version="v1"),
        ...     ModelReference(model_key="smoking", version="v2"),
        ...     outcome_var="Cancer",
        ...     interventions=["Smoking"],
        ... )
        >>> report.score
        0.4
    """

    def __init__(
        self,
        registry: Optional[ModelRegistry] = None,
        ontology: Optional[VariableOntology] = None,
        config: Optional[DisagreementConfig] = None,
        graph_config: Optional[GraphConfig] = None,
        counterfactual_config: Optional[CounterfactualConfig] = None,
    ):
        """Initialize the engine.

        Args:
            registry: Resolves ModelReference sides
            ontology: Shared variable ontology. When omitted, each comparison
                treats the union of both graphs' node names as the ontology.
            config: Severity weights and tolerances
            graph_config: Hydration caps for resolved graphs
            counterfactual_config: Propagation settings for intervention diffs
        """
        self.registry = registry
        self.ontology = ontology
        self.config = config or DisagreementConfig()
        self.graph_config = graph_config or GraphConfig()
        self.counterfactual_config = counterfactual_config or CounterfactualConfig()

    # ------------------------------------------------------------------
    # Side resolution
    # ------------------------------------------------------------------

    def resolve_side(self, side: ComparisonSide) -> ResolvedSide:
        """Hydrate a registry reference or an inline spec."""
        if isinstance(side, InlineSCMSpec):
            version = SCMModelVersion(
                version=side.version,
                dag=side.dag,
                assumptions=side.assumptions,
                confounders=side.confounders,
                validation=side.validation,
            )
            ref = ModelRef(model_key=side.model_key, version=side.version)
            domain = side.domain
        elif isinstance(side, ModelReference):
            if self.registry is None:
                raise InvalidClaim(
                    f"Cannot resolve model reference '{side.model_key}' without a registry"
                )
            resolved = self.registry.get_model_version(side.model_key, side.version)
            version = resolved.version
            ref = resolved.ref
            domain = resolved.model.domain
        else:
            raise InvalidClaim(f"Unsupported comparison side: {type(side).__name__}")

        return ResolvedSide(
            ref=ref,
            domain=domain,
            graph=version.build_graph(self.graph_config),
            assumptions=version.assumption_list(),
            confounders=version.confounder_list(),
            evidence=version.evidence_score(self.config.default_evidence_weight),
        )

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def compare(
        self,
        left: ComparisonSide,
        right: ComparisonSide,
        outcome_var: str,
        interventions: Sequence[str] = (),
    ) -> DisagreementReport:
        """Diff two model versions into a scored disagreement report.

        Raises:
            InvalidClaim: Blank outcome, or outcome absent from both graphs
            MalformedGraph: Either side's graph fails hydration
            ModelNotFound: A registry reference does not resolve
        """
        outcome_var = outcome_var.strip() if isinstance(outcome_var, str) else ""
        if not outcome_var:
            raise InvalidClaim("outcome_var is required for model comparison")

        left_side = self.resolve_side(left)
        right_side = self.resolve_side(right)
        all_names = sorted(left_side.graph.node_names + right_side.graph.node_names)

        ontology = self.ontology or VariableOntology.from_names(all_names)
        alignment = ontology.align_all(all_names)
        unknown_variables = list(alignment.unknown)

        context = _Context(ontology, left_side, right_side, outcome_var)
        if context.outcome_node(left_side) is None and context.outcome_node(right_side) is None:
            raise InvalidClaim(
                f"Outcome '{outcome_var}' is not present in either model",
                details={"outcome": outcome_var},
            )

        cross_domain = normalize_token(left_side.domain) != normalize_token(right_side.domain)
        threshold = (
            self.config.cross_domain_alignment_threshold
            if cross_domain
            else self.config.default_alignment_threshold
        )
        quality = AlignmentQuality(
            coverage=round(max(0.0, min(1.0, alignment.coverage)), 4),
            threshold=threshold,
            cross_domain=cross_domain,
        )

        resolved_interventions: List[str] = []
        for name in sanitize_list(interventions):
            try:
                resolved_interventions.append(context.require_variable(name))
            except AlignmentAmbiguous as e:
                logger.warning(f"Skipping intervention: {e.message}")
                unknown_variables.append(name)

        context.grade_loci(resolved_interventions)

        atoms: List[DisagreementAtom] = []
        if quality.below_threshold:
            atoms.append(
                DisagreementAtom(
                    type=AtomType.ASSUMPTION,
                    severity=Severity.HIGH,
                    left_value=f"{round(quality.coverage * 100)}%",
                    right_value=f">={round(threshold * 100)}%",
                    reason=(
                        "Ontology alignment coverage is below required threshold "
                        "for cross-model comparison."
                    ),
                    epistemic_weight=self._epistemic(AtomType.ASSUMPTION, context),
                )
            )

        left_edges = context.edge_map(left_side)
        right_edges = context.edge_map(right_side)
        edge_loci = set(left_edges) | set(right_edges)

        atoms.extend(self._edge_atoms(context, left_edges, right_edges, edge_loci))
        atoms.extend(self._assumption_atoms(context))
        atoms.extend(self._confounder_atoms(context))
        for key in resolved_interventions:
            atoms.extend(self._intervention_atoms(context, key))

        score = self._score(atoms, len(edge_loci))
        report = DisagreementReport(
            score=score,
            summary=_summarize(atoms),
            atoms=atoms,
            aligned_variables=alignment.aligned,
            unknown_variables=unknown_variables,
            alignment_quality=quality,
            outcome_var=context.display(context.outcome_key),
            left_ref=left_side.ref,
            right_ref=right_side.ref,
        )

        logger.info(
            f"Compared {left_side.ref.label()} vs {right_side.ref.label()}: "
            f"{len(atoms)} atoms, score={score}"
        )
        return report

    # ------------------------------------------------------------------
    # Atom builders
    # ------------------------------------------------------------------

    def _edge_atoms(
        self,
        context: "_Context",
        left_edges: Dict[EdgeKey, List[CausalEdge]],
        right_edges: Dict[EdgeKey, List[CausalEdge]],
        edge_loci: Set[EdgeKey],
    ) -> List[DisagreementAtom]:
        atoms: List[DisagreementAtom] = []
        handled_pairs: Set[frozenset] = set()

        for locus in sorted(edge_loci):
            left = left_edges.get(locus)
            right = right_edges.get(locus)
            source, target = locus

            if left and right:
                left_signs = _sign_label(left)
                right_signs = _sign_label(right)
                if left_signs != right_signs:
                    atoms.append(
                        DisagreementAtom(
                            type=AtomType.EDGE_SIGN,
                            severity=context.severity_of([source, target]),
                            left_value=left_signs,
                            right_value=right_signs,
                            edge=context.edge_locus(locus),
                            reason="Both models agree on structure but disagree on effect sign.",
                            epistemic_weight=self._epistemic(
                                AtomType.EDGE_SIGN, context, left + right
                            ),
                        )
                    )
                continue

            reverse = (target, source)
            left_reverse = left_edges.get(reverse)
            right_reverse = right_edges.get(reverse)
            if (left and right_reverse) or (right and left_reverse):
                pair = frozenset(locus)
                if pair in handled_pairs:
                    continue
                handled_pairs.add(pair)
                left_direction = locus if left else reverse
                right_direction = locus if right else reverse
                involved = (left or left_reverse or []) + (right or right_reverse or [])
                atoms.append(
                    DisagreementAtom(
                        type=AtomType.EDGE_DIRECTION,
                        severity=context.severity_of([source, target]),
                        left_value=context.describe_edge(left_direction),
                        right_value=context.describe_edge(right_direction),
                        edge=context.edge_locus(min(locus, reverse)),
                        reason="Models reverse the direction of causality for the same variable pair.",
                        epistemic_weight=self._epistemic(
                            AtomType.EDGE_DIRECTION, context, involved
                        ),
                    )
                )
                continue

            atoms.append(
                DisagreementAtom(
                    type=AtomType.EDGE_PRESENCE,
                    severity=context.severity_of([source, target]),
                    left_value="present" if left else "absent",
                    right_value="present" if right else "absent",
                    edge=context.edge_locus(locus),
                    reason="One model includes a causal edge the other omits.",
                    epistemic_weight=self._epistemic(
                        AtomType.EDGE_PRESENCE, context, left or right or []
                    ),
                )
            )

        return atoms

    def _assumption_atoms(self, context: "_Context") -> List[DisagreementAtom]:
        left = {normalize_token(item): item for item in context.left.assumptions}
        right = {normalize_token(item): item for item in context.right.assumptions}
        atoms: List[DisagreementAtom] = []

        for key in sorted(set(left) ^ set(right)):
            text = left.get(key) or right[key]
            touched = context.keys_mentioned_in(text)
            atoms.append(
                DisagreementAtom(
                    type=AtomType.ASSUMPTION,
                    severity=context.severity_of(touched),
                    left_value=left.get(key, "missing"),
                    right_value=right.get(key, "missing"),
                    variable=context.most_severe_display(touched),
                    reason=(
                        "Assumption is explicit in left model but absent in right model."
                        if key in left
                        else "Assumption is explicit in right model but absent in left model."
                    ),
                    epistemic_weight=self._epistemic(AtomType.ASSUMPTION, context),
                )
            )
        return atoms

    def _confounder_atoms(self, context: "_Context") -> List[DisagreementAtom]:
        left = {context.key(item): item for item in context.left.confounders}
        right = {context.key(item): item for item in context.right.confounders}
        atoms: List[DisagreementAtom] = []

        for key in sorted(set(left) ^ set(right)):
            atoms.append(
                DisagreementAtom(
                    type=AtomType.CONFOUNDER,
                    severity=context.severity_of([key]),
                    left_value="tracked" if key in left else "not tracked",
                    right_value="tracked" if key in right else "not tracked",
                    variable=context.display(key, fallback=left.get(key) or right[key]),
                    reason="Confounder adjustment set diverges.",
                    epistemic_weight=self._epistemic(AtomType.CONFOUNDER, context),
                )
            )
        return atoms

    def _intervention_atoms(self, context: "_Context", key: str) -> List[DisagreementAtom]:
        left_path, left_delta, left_edges = self._unit_effect(context, context.left, key)
        right_path, right_delta, right_edges = self._unit_effect(context, context.right, key)
        display = context.display(key)
        outcome = context.display(context.outcome_key)
        involved = left_edges + right_edges

        if left_path != right_path:
            return [
                DisagreementAtom(
                    type=AtomType.INTERVENTION,
                    severity=context.severity_of([key]),
                    left_value=_describe_effect(left_path, left_delta),
                    right_value=_describe_effect(right_path, right_delta),
                    variable=display,
                    reason=(
                        f"Only one model has a mechanism path from {display} to {outcome}."
                    ),
                    epistemic_weight=self._epistemic(AtomType.INTERVENTION, context, involved),
                )
            ]

        if left_path and abs(left_delta - right_delta) > self.config.counterfactual_tolerance:
            return [
                DisagreementAtom(
                    type=AtomType.COUNTERFACTUAL,
                    severity=context.severity_of([key]),
                    left_value=f"{left_delta:.4f}",
                    right_value=f"{right_delta:.4f}",
                    variable=display,
                    reason=(
                        f"Predicted do({display}) response differs for outcome {outcome}."
                    ),
                    epistemic_weight=self._epistemic(
                        AtomType.COUNTERFACTUAL, context, involved
                    ),
                )
            ]
        return []

    def _unit_effect(
        self,
        context: "_Context",
        side: ResolvedSide,
        key: str,
    ) -> Tuple[bool, float, List[CausalEdge]]:
        node = context.node_for_key(side, key)
        outcome = context.outcome_node(side)
        if node is None or outcome is None or node == outcome:
            return False, 0.0, []

        trace = trace_counterfactual(
            side.graph,
            Intervention(variable=node, value=1.0),
            outcome,
            observed_world={},
            model_ref=side.ref,
            config=self.counterfactual_config,
        )
        edges: List[CausalEdge] = []
        for rendered in trace.computation.affected_paths:
            hops = rendered.split(" -> ")
            for source, target in zip(hops, hops[1:]):
                edges.extend(side.graph.edges_between(source, target))
        return trace.has_mechanism_path, trace.result.delta, edges

    # ------------------------------------------------------------------
    # Weights and score
    # ------------------------------------------------------------------

    def _epistemic(
        self,
        atom_type: AtomType,
        context: "_Context",
        edges: Iterable[CausalEdge] = (),
    ) -> EpistemicWeight:
        """Split an atom's weight over data, mechanism and assumption grounds.

        Version-level evidence scores are averaged over both sides; edge
        provenance tags and declared mechanisms shift weight away from bare
        assumption. The triple is scaled down to sum to at most 1.
        """
        evidence = (context.left.evidence + context.right.evidence) / 2
        edges = list(edges)
        data_backed = any(_is_data_tag(edge.evidence_type) for edge in edges)
        mechanism_backed = any(edge.has_mechanism for edge in edges)

        if atom_type == AtomType.ASSUMPTION:
            raw = (evidence * 0.35, 0.45, 0.9)
        elif atom_type == AtomType.CONFOUNDER:
            raw = (evidence * 0.5, 0.55, 0.8)
        else:
            raw = (
                evidence if data_backed else evidence * 0.5,
                0.82 if mechanism_backed else 0.3,
                0.2 if (data_backed or mechanism_backed) else 0.6,
            )

        total = sum(raw)
        scale = 1.0 / total if total > 1.0 else 1.0
        data, mechanism, assumption = (_floor4(value * scale) for value in raw)
        return EpistemicWeight(
            data_grounded=data,
            mechanism_grounded=mechanism,
            assumption_grounded=assumption,
        )

    def _score(self, atoms: Sequence[DisagreementAtom], edge_locus_count: int) -> float:
        weights = {
            Severity.HIGH: self.config.high_weight,
            Severity.MEDIUM: self.config.medium_weight,
            Severity.LOW: self.config.low_weight,
        }
        total = sum(weights[atom.severity] for atom in atoms)
        return round(max(0.0, min(1.0, total / max(1, edge_locus_count))), 4)


class _Context:
    """Per-comparison lookup tables keyed on canonical locus keys."""

    def __init__(
        self,
        ontology: VariableOntology,
        left: ResolvedSide,
        right: ResolvedSide,
        outcome_var: str,
    ):
        self.ontology = ontology
        self.left = left
        self.right = right
        self.outcome_key = self.key(outcome_var)
        self._display: Dict[str, str] = {}
        self._nodes: Dict[int, Dict[str, str]] = {}
        self.high_keys: Set[str] = set()
        self.medium_keys: Set[str] = set()

        for side in (left, right):
            by_key: Dict[str, str] = {}
            for name in side.graph.node_names:
                key = self.key(name)
                by_key.setdefault(key, name)
                # Smallest spelling wins so display names do not depend on side order
                spelling = ontology.canonical_name(name)
                current = self._display.get(key)
                self._display[key] = spelling if current is None else min(current, spelling)
            self._nodes[id(side)] = by_key

    def key(self, name: str) -> str:
        return self.ontology.canonical_key(name)

    def display(self, key: str, fallback: Optional[str] = None) -> str:
        return self._display.get(key, fallback if fallback is not None else key)

    def node_for_key(self, side: ResolvedSide, key: str) -> Optional[str]:
        return self._nodes[id(side)].get(key)

    def outcome_node(self, side: ResolvedSide) -> Optional[str]:
        return self.node_for_key(side, self.outcome_key)

    def require_variable(self, name: str) -> str:
        """Locus key of a variable present in at least one graph."""
        key = self.key(name)
        if self.node_for_key(self.left, key) is None and self.node_for_key(self.right, key) is None:
            confidence = self.ontology.align(name).confidence
            raise AlignmentAmbiguous(name, confidence=confidence)
        return key

    def edge_map(self, side: ResolvedSide) -> Dict[EdgeKey, List[CausalEdge]]:
        edges: Dict[EdgeKey, List[CausalEdge]] = {}
        for edge in side.graph.edges:
            edges.setdefault((self.key(edge.source), self.key(edge.target)), []).append(edge)
        return edges

    def edge_locus(self, locus: EdgeKey) -> EdgeLocus:
        return EdgeLocus(source=self.display(locus[0]), target=self.display(locus[1]))

    def describe_edge(self, locus: EdgeKey) -> str:
        return f"{self.display(locus[0])} -> {self.display(locus[1])}"

    def keys_mentioned_in(self, text: str) -> List[str]:
        normalized = normalize_token(text)
        return sorted(key for key in self._display if key and key in normalized)

    def grade_loci(self, interventions: Sequence[str]) -> None:
        """Collect locus keys that make an atom high or medium severity."""
        self.high_keys = {self.outcome_key}
        self.medium_keys = set()

        for side in (self.left, self.right):
            graph = side.graph
            outcome = self.outcome_node(side)
            if outcome is None:
                continue

            self.high_keys.update(self.key(parent) for parent in graph.parents(outcome))
            for ancestor in graph.ancestors_of(outcome):
                if graph.parents(ancestor):
                    self.medium_keys.add(self.key(ancestor))

            for key in interventions:
                treatment = self.node_for_key(side, key)
                if treatment is None or treatment == outcome:
                    continue
                for confounder in structural_confounders(graph, treatment, outcome):
                    self.high_keys.add(self.key(confounder))
                for mediator in graph.mediators(treatment, outcome):
                    self.medium_keys.add(self.key(mediator))

    def severity_of(self, keys: Iterable[str]) -> Severity:
        keys = set(keys)
        if keys & self.high_keys:
            return Severity.HIGH
        if keys & self.medium_keys:
            return Severity.MEDIUM
        return Severity.LOW

    def most_severe_display(self, keys: Sequence[str]) -> Optional[str]:
        if not keys:
            return None
        ranked = sorted(keys, key=lambda key: (-SEVERITY_RANK[self.severity_of([key])], key))
        return self.display(ranked[0])


def _sign_label(edges: Sequence[CausalEdge]) -> str:
    return ",".join(sorted({edge.sign.value for edge in edges}))


def _is_data_tag(tag: Optional[str]) -> bool:
    return bool(tag) and normalize_token(tag) in DATA_EVIDENCE_TAGS


def _floor4(value: float) -> float:
    return math.floor(value * 10000) / 10000


def _describe_effect(has_path: bool, delta: float) -> str:
    if not has_path:
        return "no mechanism path"
    return f"mechanism path (delta={delta:.4f})"


def _summarize(atoms: Sequence[DisagreementAtom]) -> str:
    if not atoms:
        return "No material causal disagreement detected between the compared models."
    counts = {severity: 0 for severity in Severity}
    for atom in atoms:
        counts[atom.severity] += 1
    return (
        f"Detected {len(atoms)} disagreement atom(s) "
        f"({counts[Severity.HIGH]} high, {counts[Severity.MEDIUM]} medium, "
        f"{counts[Severity.LOW]} low) across structure, assumptions, "
        f"and intervention predictions."
    )
