"""Shared fixtures for causal core tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest

from causalcore.graph import CausalGraph
from causalcore.persistence import MemorySink
from causalcore.registry import InMemoryModelRegistry, SCMModel, SCMModelVersion


def confounded_edges() -> List[Dict[str, Any]]:
    return [
        {"from": "Confounder", "to": "Treatment", "sign": "positive"},
        {"from": "Confounder", "to": "Outcome", "sign": "positive"},
        {"from": "Treatment", "to": "Outcome", "sign": "positive"},
    ]


def smoking_dag(tar_sign: str = "positive") -> Dict[str, Any]:
    """Genetics confounds Smoking -> Tar -> Cancer."""
    return {
        "nodes": ["Genetics", "Smoking", "Tar", "Cancer"],
        "edges": [
            {"from": "Genetics", "to": "Smoking", "sign": "positive"},
            {"from": "Genetics", "to": "Cancer", "sign": "positive"},
            {
                "from": "Smoking",
                "to": "Tar",
                "sign": "positive",
                "mechanism": "combustion deposits tar in the lungs",
            },
            {
                "from": "Tar",
                "to": "Cancer",
                "sign": tar_sign,
                "mechanism": "carcinogen exposure",
            },
        ],
    }


@pytest.fixture
def confounded_graph() -> CausalGraph:
    """Confounder -> Treatment -> Outcome with Confounder -> Outcome."""
    return CausalGraph.hydrate(["Confounder", "Treatment", "Outcome"], confounded_edges())


@pytest.fixture
def chain_graph() -> CausalGraph:
    return CausalGraph.hydrate(
        ["A", "B", "C"],
        [{"from": "A", "to": "B"}, {"from": "B", "to": "C"}],
    )


@pytest.fixture
def smoking_model() -> SCMModel:
    return SCMModel(
        model_id="model-smoking",
        model_key="smoking",
        domain="health",
        name="Smoking and cancer",
    )


@pytest.fixture
def smoking_versions() -> List[SCMModelVersion]:
    """v1 (current) with a positive Tar -> Cancer edge; v2 flips the sign."""
    common = {
        "assumptions": ["No unmeasured confounding of Tar"],
        "confounders": ["Genetics"],
        "validation": {"evidenceScore": 0.7},
    }
    return [
        SCMModelVersion(version="v1", is_current=True, dag=smoking_dag(), **common),
        SCMModelVersion(version="v2", dag=smoking_dag(tar_sign="negative"), **common),
    ]


@pytest.fixture
def registry(smoking_model, smoking_versions) -> InMemoryModelRegistry:
    registry = InMemoryModelRegistry()
    registry.register(smoking_model, smoking_versions)
    return registry


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def audit_dir(tmp_path: Path) -> Path:
    path = tmp_path / "audit"
    path.mkdir()
    return path


class FailingSink:
    """Sink whose every write raises."""

    def _fail(self, *args, **kwargs):
        raise OSError("disk full")

    record_report = _fail
    record_trace = _fail
    record_autopsy = _fail
    record_promotion_audit = _fail
    record_version_flip = _fail


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


@pytest.fixture
def smoking_dag_factory():
    return smoking_dag
