"""
Identifiability Gate.

Decides whether the causal effect of a treatment on an outcome is
identifiable given a proposed adjustment set, using a backdoor-style
common-cause check:

    C is a required confounder of (T, Y) iff
      C is an ancestor of T, and
      C reaches Y along a directed path that avoids T.

The second clause excludes mediators (T -> M -> Y): M is a descendant of T,
never an ancestor, and an ancestor of T whose only route to Y runs through T
is not a common cause.

Known limitation: this is a common-ancestor approximation, not a
collider-aware backdoor-path solver. Promotion and audit semantics rely on
this simpler check, so it is kept deliberately.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from causalcore.errors import InvalidClaim
from causalcore.graph import CausalGraph, normalize_token
from causalcore.identifiability.models import (
    AllowedOutputClass,
    ConfounderCompletenessResult,
    IdentifiabilityResult,
    InterventionGateResult,
)

logger = logging.getLogger(__name__)


def sanitize_list(values: Optional[Iterable[str]]) -> List[str]:
    """Strip, drop blanks and de-duplicate while keeping first-seen order."""
    if not values:
        return []
    seen = set()
    cleaned: List[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        stripped = value.strip()
        if stripped and stripped not in seen:
            seen.add(stripped)
            cleaned.append(stripped)
    return cleaned


def structural_confounders(graph: CausalGraph, treatment: str, outcome: str) -> List[str]:
    """Common causes of treatment and outcome, in topological order."""
    treatment_name = graph.require(treatment)
    outcome_name = graph.require(outcome)
    treatment_ancestors = graph.ancestors_of(treatment_name)
    outcome_ancestors = graph.ancestors_avoiding(outcome_name, [treatment_name])
    common = treatment_ancestors & outcome_ancestors
    return [name for name in graph.topological_order() if name in common]


def check_identifiability(
    graph: CausalGraph,
    treatment: str,
    outcome: str,
    adjustment_set: Optional[Sequence[str]] = None,
    known_confounders: Optional[Sequence[str]] = None,
) -> IdentifiabilityResult:
    """Backdoor-style identifiability check.

    Args:
        graph: Hydrated causal graph
        treatment: Treatment variable name
        outcome: Outcome variable name
        adjustment_set: Variables the caller controls for
        known_confounders: Caller-declared confounders; kept only if they
            pass the same common-cause test

    Returns:
        IdentifiabilityResult with required and missing confounders

    Raises:
        InvalidClaim: Treatment/outcome blank, unknown, or identical
    """
    treatment = treatment.strip() if isinstance(treatment, str) else ""
    outcome = outcome.strip() if isinstance(outcome, str) else ""
    if not treatment or not outcome:
        raise InvalidClaim(
            "Treatment and outcome are required for identifiability checks",
            details={"treatment": treatment, "outcome": outcome},
        )

    treatment_name = graph.require(treatment)
    outcome_name = graph.require(outcome)
    if treatment_name == outcome_name:
        raise InvalidClaim(
            f"Treatment and outcome must differ (both '{treatment_name}')",
            details={"treatment": treatment_name},
        )

    adjustment = sanitize_list(adjustment_set)
    known = sanitize_list(known_confounders)

    required = structural_confounders(graph, treatment_name, outcome_name)
    required_set = set(required)

    rejected: List[str] = []
    for candidate in known:
        resolved = graph.resolve(candidate)
        if resolved is None or resolved not in required_set:
            rejected.append(candidate)

    adjusted = {_match_key(graph, item) for item in adjustment}
    missing = [name for name in required if _match_key(graph, name) not in adjusted]

    if missing:
        note = "Effect is not identifiable until missing confounders are controlled."
    else:
        note = (
            "Backdoor confounders are controlled; effect is identifiable "
            "under provided assumptions."
        )
    if rejected:
        note += (
            f" Declared confounder(s) {', '.join(rejected)} are not common causes "
            f"of {treatment_name} and {outcome_name} in this graph and were ignored."
        )

    logger.debug(
        f"Identifiability {treatment_name} -> {outcome_name}: "
        f"required={required} missing={missing}"
    )

    return IdentifiabilityResult(
        identifiable=not missing,
        required_confounders=required,
        adjustment_set=adjustment,
        missing_confounders=missing,
        rejected_confounders=rejected,
        note=note,
    )


def evaluate_intervention_gate(
    graph: CausalGraph,
    treatment: str,
    outcome: str,
    adjustment_set: Optional[Sequence[str]] = None,
    known_confounders: Optional[Sequence[str]] = None,
) -> InterventionGateResult:
    """Downgrade a claim to the strongest class its controls justify.

    - intervention_supported: identifiable
    - intervention_inferred: not identifiable, some controls supplied
    - association_only: no controls at all, or the claim is invalid

    Invalid claims fail closed instead of raising.
    """
    adjustment = sanitize_list(adjustment_set)
    known = sanitize_list(known_confounders)

    try:
        identifiability = check_identifiability(
            graph,
            treatment,
            outcome,
            adjustment_set=adjustment,
            known_confounders=known,
        )
    except InvalidClaim as e:
        logger.warning(f"Intervention gate rejected claim: {e.message}")
        return InterventionGateResult(
            allowed=False,
            allowed_output_class=AllowedOutputClass.ASSOCIATION_ONLY,
            rationale=e.message,
            identifiability=IdentifiabilityResult(
                identifiable=False,
                required_confounders=known,
                adjustment_set=adjustment,
                missing_confounders=known,
                note="Insufficient inputs for identifiability check.",
            ),
        )

    if identifiability.identifiable:
        return InterventionGateResult(
            allowed=True,
            allowed_output_class=AllowedOutputClass.INTERVENTION_SUPPORTED,
            rationale="Backdoor confounders are controlled for intervention claims.",
            identifiability=identifiability,
        )

    has_partial_controls = bool(adjustment or known)
    if has_partial_controls:
        output_class = AllowedOutputClass.INTERVENTION_INFERRED
        rationale = (
            "Intervention semantics are degraded because required confounders are missing."
        )
    else:
        output_class = AllowedOutputClass.ASSOCIATION_ONLY
        rationale = (
            "No confounder controls provided; intervention claims must downgrade to association."
        )

    return InterventionGateResult(
        allowed=False,
        allowed_output_class=output_class,
        rationale=rationale,
        identifiability=identifiability,
    )


def check_confounder_completeness(
    required: Sequence[str],
    provided: Sequence[str],
) -> ConfounderCompletenessResult:
    """Compare a provided confounder list against a required one."""
    required_list = sanitize_list(required)
    provided_list = sanitize_list(provided)
    provided_keys = {normalize_token(item) for item in provided_list}
    required_keys = {normalize_token(item) for item in required_list}

    missing = [item for item in required_list if normalize_token(item) not in provided_keys]
    extras = [item for item in provided_list if normalize_token(item) not in required_keys]
    coverage = (
        1.0
        if not required_list
        else (len(required_list) - len(missing)) / len(required_list)
    )

    return ConfounderCompletenessResult(
        complete=not missing,
        coverage=round(coverage, 4),
        missing=missing,
        extras=extras,
    )


def _match_key(graph: CausalGraph, name: str) -> str:
    resolved = graph.resolve(name)
    return resolved if resolved is not None else normalize_token(name)
