"""Variable ontology and alignment models."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class MatchedBy(str, Enum):
    """How an input name was matched to the ontology."""

    CANONICAL = "canonical"
    ALIAS = "alias"
    NORMALIZED = "normalized"
    NONE = "none"


MATCH_CONFIDENCE = {
    MatchedBy.CANONICAL: 1.0,
    MatchedBy.ALIAS: 0.92,
    MatchedBy.NORMALIZED: 0.75,
    MatchedBy.NONE: 0.0,
}


class OntologyVariable(BaseModel):
    """A canonical variable with its known aliases."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    variable_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("variable_id", "id")
    )
    canonical_name: str = Field(
        ..., validation_alias=AliasChoices("canonical_name", "canonicalName", "name")
    )
    aliases: List[str] = Field(default_factory=list)
    unit: Optional[str] = None
    description: Optional[str] = None
    datatype: str = "number"

    @field_validator("canonical_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("canonical_name must not be blank")
        return value

    @field_validator("aliases", mode="before")
    @classmethod
    def _clean_aliases(cls, value):
        if value is None:
            return []
        return [alias.strip() for alias in value if isinstance(alias, str) and alias.strip()]


class VariableAlignment(BaseModel):
    """Alignment of one input name."""

    input: str
    canonical: Optional[str] = None
    variable_id: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    matched_by: MatchedBy = MatchedBy.NONE

    @property
    def matched(self) -> bool:
        return self.matched_by != MatchedBy.NONE


class VariableAlignmentResult(BaseModel):
    aligned: List[VariableAlignment] = Field(default_factory=list)
    unknown: List[str] = Field(default_factory=list)

    @property
    def coverage(self) -> float:
        if not self.aligned:
            return 1.0
        matched = sum(1 for item in self.aligned if item.matched)
        return matched / len(self.aligned)
