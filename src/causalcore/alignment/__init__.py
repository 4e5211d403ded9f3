"""Variable alignment across causal models."""

from causalcore.alignment.models import (
    MATCH_CONFIDENCE,
    MatchedBy,
    OntologyVariable,
    VariableAlignment,
    VariableAlignmentResult,
)
from causalcore.alignment.ontology import VariableOntology

__all__ = [
    "MATCH_CONFIDENCE",
    "MatchedBy",
    "OntologyVariable",
    "VariableAlignment",
    "VariableAlignmentResult",
    "VariableOntology",
]
