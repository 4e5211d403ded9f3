"""Identifiability gate for intervention claims.

Downgrades a causal claim to the strongest output class its adjustment set
justifies (association_only < intervention_inferred < intervention_supported).
"""

from causalcore.identifiability.gate import (
    check_confounder_completeness,
    check_identifiability,
    evaluate_intervention_gate,
    sanitize_list,
    structural_confounders,
)
from causalcore.identifiability.models import (
    AllowedOutputClass,
    ConfounderCompletenessResult,
    IdentifiabilityResult,
    InterventionGateResult,
)

__all__ = [
    "AllowedOutputClass",
    "ConfounderCompletenessResult",
    "IdentifiabilityResult",
    "InterventionGateResult",
    "check_confounder_completeness",
    "check_identifiability",
    "evaluate_intervention_gate",
    "sanitize_list",
    "structural_confounders",
]
