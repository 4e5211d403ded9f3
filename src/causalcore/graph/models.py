"""Causal Graph Models.

Defines the serialized shapes of a structural causal model's DAG:
- NodeKind / EdgeSign: Closed vocabularies for node roles and edge signs
- CausalNode: Named variable with a declared role
- CausalEdge: Directed, sign-annotated causal link
- DagSpec: Nodes plus edges as stored in a model version
- DSeparationResult: Output of the lightweight d-separation check

Specs arrive from the registry or from inline JSON, so the models accept the
common aliases seen in stored DAGs (``from``/``source``, ``to``/``target``,
``type``/``kind``, ``+``/``-`` signs).
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_token(value: str) -> str:
    """Lowercase and strip everything but ASCII letters and digits."""
    return _NON_ALNUM.sub("", value.lower())


class NodeKind(str, Enum):
    """Declared role of a variable in the SCM."""

    OBSERVABLE = "observable"
    LATENT = "latent"
    EXOGENOUS = "exogenous"
    INTERVENTION = "intervention"


class EdgeSign(str, Enum):
    """Direction of a causal effect."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    UNKNOWN = "unknown"


_NODE_KINDS = {kind.value for kind in NodeKind}

_SIGN_ALIASES = {
    "+": EdgeSign.POSITIVE,
    "pos": EdgeSign.POSITIVE,
    "positive": EdgeSign.POSITIVE,
    "-": EdgeSign.NEGATIVE,
    "neg": EdgeSign.NEGATIVE,
    "negative": EdgeSign.NEGATIVE,
    "unknown": EdgeSign.UNKNOWN,
    "?": EdgeSign.UNKNOWN,
}


class CausalNode(BaseModel):
    """A variable in the causal graph.

    Example:
        >>> node = CausalNode(name="Smoking", kind=NodeKind.OBSERVABLE, domain="biology")
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Unique variable name")
    kind: NodeKind = Field(
        default=NodeKind.OBSERVABLE,
        validation_alias=AliasChoices("kind", "type"),
        description="Declared role of the variable",
    )
    domain: str = Field(default="abstract", description="Domain tag")
    description: Optional[str] = Field(default=None, description="Human-readable description")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("node name must not be blank")
        return value

    @field_validator("kind", mode="before")
    @classmethod
    def _coerce_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in _NODE_KINDS:
                return normalized
            # Roles such as "treatment" or "mediator" are observable variables
            return NodeKind.OBSERVABLE.value
        return value


class CausalEdge(BaseModel):
    """Directed causal link between two named nodes.

    ``source``/``target`` serialize as ``from``/``to`` when dumped by alias.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    source: str = Field(
        ...,
        validation_alias=AliasChoices("source", "from"),
        serialization_alias="from",
        description="Cause node name",
    )
    target: str = Field(
        ...,
        validation_alias=AliasChoices("target", "to"),
        serialization_alias="to",
        description="Effect node name",
    )
    sign: EdgeSign = Field(default=EdgeSign.UNKNOWN, description="Effect direction")
    reversible: bool = Field(default=False)
    mechanism: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("mechanism", "mechanism_description"),
        description="Declared causal mechanism",
    )
    strength: Optional[float] = Field(default=None, description="Relative effect strength")
    evidence_type: Optional[str] = Field(default=None, description="Provenance tag")

    @field_validator("source", "target")
    @classmethod
    def _strip_endpoint(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("edge endpoints must not be blank")
        return value

    @field_validator("sign", mode="before")
    @classmethod
    def _coerce_sign(cls, value: Any) -> Any:
        if value is None:
            return EdgeSign.UNKNOWN
        if isinstance(value, str):
            return _SIGN_ALIASES.get(value.strip().lower(), value)
        return value

    @model_validator(mode="after")
    def _reject_self_loop(self) -> "CausalEdge":
        if self.source == self.target:
            raise ValueError(f"self-loop on '{self.source}' is not permitted")
        return self

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source, self.target)

    @property
    def identity(self) -> Tuple[Any, ...]:
        """Full identity used to reject exact duplicate edges."""
        return (
            self.source,
            self.target,
            self.sign,
            self.reversible,
            self.mechanism,
            self.strength,
            self.evidence_type,
        )

    @property
    def has_declared_sign(self) -> bool:
        return self.sign != EdgeSign.UNKNOWN

    @property
    def has_mechanism(self) -> bool:
        return bool(self.mechanism and self.mechanism.strip())

    @property
    def sign_factor(self) -> int:
        """-1 for negative edges; unknown signs propagate in the positive direction."""
        return -1 if self.sign == EdgeSign.NEGATIVE else 1

    @property
    def effective_strength(self) -> float:
        if self.strength is None:
            return 1.0
        return max(0.1, min(2.0, self.strength))

    def describe(self) -> str:
        return f"{self.source} -> {self.target}"


class DagSpec(BaseModel):
    """Serialized DAG as stored in a model version (``dag_json``)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    nodes: List[CausalNode] = Field(default_factory=list)
    edges: List[CausalEdge] = Field(default_factory=list)

    @field_validator("nodes", mode="before")
    @classmethod
    def _accept_bare_names(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                {"name": item} if isinstance(item, str) else _node_id_fallback(item)
                for item in value
            ]
        return value

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _node_id_fallback(item: Any) -> Any:
    # Stored DAGs sometimes carry ``id`` instead of ``name``
    if isinstance(item, dict) and "name" not in item and "id" in item:
        return {**item, "name": item["id"]}
    return item


class DSeparationResult(BaseModel):
    """Result of the undirected-path d-separation approximation."""

    d_separated: bool
    active_paths: List[List[str]] = Field(default_factory=list)
    note: str = ""
