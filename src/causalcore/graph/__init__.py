"""Causal graph model - hydration, ancestry and path queries.

Provides the shared representation consumed by every reasoning engine:
- CausalGraph: Indexed, read-only DAG with ancestor/path primitives
- CausalNode / CausalEdge / DagSpec: Serialized shapes
"""

from causalcore.graph.dag import CausalGraph
from causalcore.graph.models import (
    CausalEdge,
    CausalNode,
    DagSpec,
    DSeparationResult,
    EdgeSign,
    NodeKind,
    normalize_token,
)

__all__ = [
    "CausalGraph",
    "CausalEdge",
    "CausalNode",
    "DagSpec",
    "DSeparationResult",
    "EdgeSign",
    "NodeKind",
    "normalize_token",
]
