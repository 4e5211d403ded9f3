"""Registry models for versioned structural causal models."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from causalcore.config import GraphConfig
from causalcore.counterfactual.models import ModelRef
from causalcore.graph import CausalGraph, DagSpec

DEFAULT_EVIDENCE_WEIGHT = 0.55

Declaration = Union[str, Dict[str, Any]]


class ModelStatus(str, Enum):
    """Lifecycle state of an SCM."""

    DRAFT = "draft"
    ACTIVE = "active"
    DEPRECATED = "deprecated"


class SCMModel(BaseModel):
    """A structural causal model; owns zero or more versions."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())

    model_id: str = Field(..., validation_alias=AliasChoices("model_id", "id", "modelId"))
    model_key: str = Field(..., validation_alias=AliasChoices("model_key", "modelKey"))
    domain: str = "abstract"
    name: str = ""
    description: Optional[str] = None
    status: ModelStatus = ModelStatus.DRAFT

    @field_validator("model_key")
    @classmethod
    def _validate_key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("model_key must not be blank")
        return value


class SCMModelVersion(BaseModel):
    """One immutable version of an SCM's graph and declarations.

    Only ``is_current`` changes after creation, and only through the
    registry's ``set_current_version``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())

    version: str
    model_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("model_id", "modelId")
    )
    is_current: bool = Field(
        default=False, validation_alias=AliasChoices("is_current", "isCurrent")
    )
    dag: DagSpec = Field(
        default_factory=DagSpec,
        validation_alias=AliasChoices("dag", "dag_json", "dagJson"),
    )
    assumptions: List[Declaration] = Field(
        default_factory=list,
        validation_alias=AliasChoices("assumptions", "assumptions_json", "assumptionsJson"),
    )
    confounders: List[Declaration] = Field(
        default_factory=list,
        validation_alias=AliasChoices("confounders", "confounders_json", "confoundersJson"),
    )
    validation: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("validation", "validation_json", "validationJson"),
    )
    provenance: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("provenance", "provenance_json", "provenanceJson"),
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def assumption_list(self) -> List[str]:
        return declarations_to_strings(self.assumptions)

    def confounder_list(self) -> List[str]:
        return declarations_to_strings(self.confounders)

    def evidence_score(self, default: float = DEFAULT_EVIDENCE_WEIGHT) -> float:
        """Version-level evidence weight in [0, 1].

        Reads ``evidenceScore``, then ``dataQuality``, then
        ``identifiability`` from the validation metadata. Percentages are
        scaled down.
        """
        for key in ("evidenceScore", "evidence_score", "dataQuality", "data_quality", "identifiability"):
            candidate = self.validation.get(key)
            if isinstance(candidate, bool) or not isinstance(candidate, (int, float)):
                continue
            value = candidate / 100 if candidate > 1 else candidate
            return max(0.0, min(1.0, float(value)))
        return default

    def build_graph(self, config: Optional[GraphConfig] = None) -> CausalGraph:
        return CausalGraph.from_spec(self.dag, config)


class ResolvedModelVersion(BaseModel):
    """A model paired with one of its versions."""

    model: SCMModel
    version: SCMModelVersion

    @property
    def ref(self) -> ModelRef:
        return ModelRef(model_key=self.model.model_key, version=self.version.version)


def declarations_to_strings(items: List[Declaration]) -> List[str]:
    """Flatten declared assumptions/confounders to display strings."""
    flattened: List[str] = []
    for item in items:
        if isinstance(item, str):
            text = item
        elif isinstance(item, dict):
            if isinstance(item.get("name"), str):
                text = item["name"]
            elif isinstance(item.get("description"), str):
                text = item["description"]
            else:
                text = json.dumps(item, sort_keys=True)
        else:
            continue
        if text.strip():
            flattened.append(text.strip())
    return flattened
