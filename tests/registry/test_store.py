"""Tests for the in-memory model registry."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from causalcore.errors import InvalidConfigError, ModelNotFound
from causalcore.registry import (
    InMemoryModelRegistry,
    ModelStatus,
    SCMModel,
    SCMModelVersion,
    declarations_to_strings,
)


def current_versions(registry: InMemoryModelRegistry, model_key: str):
    return [item.version for item in registry.list_versions(model_key) if item.is_current]


class TestRegister:
    def test_flagged_version_stays_current(self, registry):
        assert current_versions(registry, "smoking") == ["v1"]

    def test_last_version_becomes_current_when_none_flagged(self, smoking_model):
        registry = InMemoryModelRegistry()
        registry.register(smoking_model, [SCMModelVersion(version="a"), SCMModelVersion(version="b")])

        assert current_versions(registry, "smoking") == ["b"]

    def test_versions_inherit_model_id(self, registry):
        assert {item.model_id for item in registry.list_versions("smoking")} == {"model-smoking"}

    def test_add_version_rejects_duplicate_label(self, registry):
        with pytest.raises(InvalidConfigError):
            registry.add_version("smoking", SCMModelVersion(version="v1"))

    def test_add_version_to_unknown_model(self, registry):
        with pytest.raises(ModelNotFound):
            registry.add_version("unknown", SCMModelVersion(version="v1"))


class TestLookup:
    def test_get_current_version(self, registry):
        resolved = registry.get_model_version("smoking")

        assert resolved.version.version == "v1"
        assert resolved.ref.label() == "smoking@v1"

    def test_get_named_version(self, registry):
        assert registry.get_model_version("smoking", "v2").version.version == "v2"

    def test_missing_version_raises(self, registry):
        with pytest.raises(ModelNotFound) as exc_info:
            registry.get_model_version("smoking", "v9")

        assert exc_info.value.details == {"model_key": "smoking", "version": "v9"}

    def test_missing_model_raises(self, registry):
        with pytest.raises(ModelNotFound):
            registry.get_model_version("weather")

    def test_current_model_by_domain(self, registry):
        assert registry.get_current_model_by_domain("health").ref.label() == "smoking@v1"
        assert registry.get_current_model_by_domain("finance") is None

    def test_public_only_lists_active_models(self, registry, smoking_model):
        assert registry.list_models(public_only=True) == []

        active = smoking_model.model_copy(update={"model_key": "smoking-live", "status": ModelStatus.ACTIVE})
        registry.register(active, [SCMModelVersion(version="v1")])
        assert [model.model_key for model in registry.list_models(public_only=True)] == ["smoking-live"]


class TestSetCurrentVersion:
    def test_flip_leaves_exactly_one_current(self, registry):
        resolved = registry.set_current_version("model-smoking", "v2")

        assert resolved.version.is_current
        assert current_versions(registry, "smoking") == ["v2"]

    def test_unknown_model_id(self, registry):
        with pytest.raises(ModelNotFound):
            registry.set_current_version("model-weather", "v1")

    def test_unknown_version_leaves_state_unchanged(self, registry):
        with pytest.raises(ModelNotFound):
            registry.set_current_version("model-smoking", "v9")

        assert current_versions(registry, "smoking") == ["v1"]

    def test_flip_persists_to_directory(self, tmp_path: Path, smoking_model, smoking_versions):
        registry = InMemoryModelRegistry(directory=tmp_path)
        registry.register(smoking_model, smoking_versions)
        registry.set_current_version("model-smoking", "v2")

        reloaded = InMemoryModelRegistry.from_directory(tmp_path)
        assert current_versions(reloaded, "smoking") == ["v2"]
        assert not list(tmp_path.glob("*.tmp"))


class TestFromDirectory:
    def test_missing_directory_starts_empty(self, tmp_path: Path):
        registry = InMemoryModelRegistry.from_directory(tmp_path / "absent")
        assert registry.list_models() == []

    def test_loads_stored_aliases(self, tmp_path: Path):
        (tmp_path / "churn.json").write_text(
            json.dumps(
                {
                    "model": {"id": "m-1", "modelKey": "churn", "domain": "product"},
                    "versions": [
                        {
                            "version": "v1",
                            "isCurrent": True,
                            "dagJson": {"nodes": ["Price", "Churn"], "edges": [{"from": "Price", "to": "Churn"}]},
                            "assumptionsJson": [{"name": "Stable pricing"}],
                        }
                    ],
                }
            )
        )

        resolved = InMemoryModelRegistry.from_directory(tmp_path).get_model_version("churn")
        assert resolved.version.assumption_list() == ["Stable pricing"]
        assert resolved.version.build_graph().node_names == ["Price", "Churn"]

    def test_invalid_file_raises(self, tmp_path: Path):
        (tmp_path / "broken.json").write_text(json.dumps({"versions": []}))

        with pytest.raises(InvalidConfigError):
            InMemoryModelRegistry.from_directory(tmp_path)


class TestVersionModel:
    @pytest.mark.parametrize(
        "validation, expected",
        [
            ({"evidenceScore": 80}, 0.8),
            ({"dataQuality": 0.3}, 0.3),
            ({"identifiability": 1.5}, 0.015),
            ({"evidenceScore": True}, 0.55),
            ({}, 0.55),
        ],
    )
    def test_evidence_score(self, validation, expected):
        version = SCMModelVersion(version="v1", validation=validation)
        assert version.evidence_score() == pytest.approx(expected)

    def test_declarations_flatten_to_strings(self):
        flattened = declarations_to_strings(
            [" Stable demand ", {"name": "Genetics"}, {"description": "No churn lag"}, {"x": 1}, "  "]
        )
        assert flattened == ["Stable demand", "Genetics", "No churn lag", '{"x": 1}']


def test_blank_model_key_rejected():
    with pytest.raises(ValueError):
        SCMModel(model_id="m", model_key="  ")
