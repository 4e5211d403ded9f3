"""Promotion governance: gate, integrity status and guarded promotion."""

from causalcore.governance.gate import PromotionGate
from causalcore.governance.integrity import (
    IntegrityService,
    StaticIntegrityService,
    evaluate_scientific_integrity,
)
from causalcore.governance.models import (
    BenchmarkRunSnapshot,
    ChecklistItem,
    HypothesisEventSnapshot,
    IntegrityCheckId,
    IntegrityChecks,
    IntegrityStatus,
    PromotionDecision,
    PromotionOverride,
    TraceSnapshot,
)
from causalcore.governance.service import PromotionOutcome, PromotionService

__all__ = [
    "BenchmarkRunSnapshot",
    "ChecklistItem",
    "HypothesisEventSnapshot",
    "IntegrityCheckId",
    "IntegrityChecks",
    "IntegrityService",
    "IntegrityStatus",
    "PromotionDecision",
    "PromotionGate",
    "PromotionOutcome",
    "PromotionOverride",
    "PromotionService",
    "StaticIntegrityService",
    "TraceSnapshot",
    "evaluate_scientific_integrity",
]
