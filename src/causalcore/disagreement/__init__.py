"""Causal disagreement between two SCM versions."""

from causalcore.disagreement.engine import DisagreementEngine, ResolvedSide
from causalcore.disagreement.models import (
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

__all__ = [
    "AlignmentQuality",
    "AtomType",
    "ComparisonSide",
    "DisagreementAtom",
    "DisagreementEngine",
    "DisagreementReport",
    "EdgeLocus",
    "EpistemicWeight",
    "InlineSCMSpec",
    "ModelReference",
    "ResolvedSide",
    "Severity",
]
