"""Versioned SCM registry."""

from causalcore.registry.models import (
    DEFAULT_EVIDENCE_WEIGHT,
    ModelStatus,
    ResolvedModelVersion,
    SCMModel,
    SCMModelVersion,
    declarations_to_strings,
)
from causalcore.registry.store import InMemoryModelRegistry, ModelRegistry

__all__ = [
    "DEFAULT_EVIDENCE_WEIGHT",
    "InMemoryModelRegistry",
    "ModelRegistry",
    "ModelStatus",
    "ResolvedModelVersion",
    "SCMModel",
    "SCMModelVersion",
    "declarations_to_strings",
]
