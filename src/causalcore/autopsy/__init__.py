"""Failure autopsy: necessity-scored root causes and prevention plans."""

from causalcore.autopsy.engine import (
    AutopsyEngine,
    failed_assumptions,
    infer_outcome,
    prevention_plan,
)
from causalcore.autopsy.models import AutopsyReport, FailureEvent, NecessityScore

__all__ = [
    "AutopsyEngine",
    "AutopsyReport",
    "FailureEvent",
    "NecessityScore",
    "failed_assumptions",
    "infer_outcome",
    "prevention_plan",
]
