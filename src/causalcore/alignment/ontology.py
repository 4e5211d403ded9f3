"""
Variable Ontology.

Maps free-form variable names from different models onto shared canonical
names so their graphs can be compared edge by edge. Lookup order:

1. exact canonical name (confidence 1.0)
2. exact alias (0.92)
3. normalized canonical name or alias, lowercase alphanumerics only (0.75)

Anything else is unmatched (confidence 0) and reported as unknown.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union

from pydantic import ValidationError

from causalcore.alignment.models import (
    MATCH_CONFIDENCE,
    MatchedBy,
    OntologyVariable,
    VariableAlignment,
    VariableAlignmentResult,
)
from causalcore.errors import AlignmentAmbiguous, InvalidConfigError
from causalcore.graph import normalize_token

logger = logging.getLogger(__name__)


class VariableOntology:
    """Canonical-name/alias lookup over a fixed set of variables.

    Example:
        >>> ontology = VariableOntology([
        ...     OntologyVariable(canonical_name="Smoking", aliases=["tobacco_use"]),
        ... ])
        >>> ontology.align("tobacco_use").confidence
        0.92
    """

    def __init__(self, variables: Iterable[OntologyVariable] = ()):
        self._variables: List[OntologyVariable] = list(variables)
        self._direct: Dict[str, OntologyVariable] = {}
        self._alias: Dict[str, OntologyVariable] = {}
        self._normalized: Dict[str, OntologyVariable] = {}

        for variable in self._variables:
            self._direct[variable.canonical_name] = variable
            self._normalized.setdefault(normalize_token(variable.canonical_name), variable)
            for alias in variable.aliases:
                self._alias.setdefault(alias, variable)
                self._normalized.setdefault(normalize_token(alias), variable)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "VariableOntology":
        """Build an ontology in which every name is its own canonical variable."""
        seen: Dict[str, OntologyVariable] = {}
        for name in names:
            if not isinstance(name, str) or not name.strip():
                continue
            key = normalize_token(name)
            if key not in seen:
                seen[key] = OntologyVariable(canonical_name=name.strip())
        return cls(seen.values())

    @classmethod
    def from_records(cls, records: Iterable[Union[OntologyVariable, Mapping[str, Any]]]) -> "VariableOntology":
        variables = []
        for record in records:
            if isinstance(record, OntologyVariable):
                variables.append(record)
                continue
            try:
                variables.append(OntologyVariable.model_validate(record))
            except ValidationError as exc:
                raise InvalidConfigError(f"Invalid ontology entry {record!r}: {exc}") from exc
        return cls(variables)

    @classmethod
    def from_json(cls, path: Path) -> "VariableOntology":
        """Load ``[{"canonical_name": ..., "aliases": [...]}, ...]`` from disk."""
        path = Path(path)
        try:
            payload = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise InvalidConfigError(f"Cannot read ontology file {path}: {exc}") from exc
        if isinstance(payload, Mapping):
            payload = payload.get("variables", [])
        if not isinstance(payload, list):
            raise InvalidConfigError(f"Ontology file {path} must contain a list of variables")
        ontology = cls.from_records(payload)
        logger.info(f"Loaded {len(ontology)} ontology variables from {path}")
        return ontology

    def __len__(self) -> int:
        return len(self._variables)

    @property
    def variables(self) -> List[OntologyVariable]:
        return list(self._variables)

    def align(self, name: str) -> VariableAlignment:
        """Align a single input name."""
        direct = self._direct.get(name)
        if direct is not None:
            return self._alignment(name, direct, MatchedBy.CANONICAL)

        alias = self._alias.get(name)
        if alias is not None:
            return self._alignment(name, alias, MatchedBy.ALIAS)

        normalized = self._normalized.get(normalize_token(name))
        if normalized is not None:
            return self._alignment(name, normalized, MatchedBy.NORMALIZED)

        return VariableAlignment(input=name)

    def align_all(self, names: Iterable[str]) -> VariableAlignmentResult:
        """Align every distinct name, in first-seen order."""
        aligned: List[VariableAlignment] = []
        seen = set()
        for name in names:
            if name in seen:
                continue
            seen.add(name)
            aligned.append(self.align(name))

        unknown = [item.input for item in aligned if not item.matched]
        if unknown:
            logger.warning(f"Unaligned variables: {', '.join(unknown)}")
        return VariableAlignmentResult(aligned=aligned, unknown=unknown)

    def require(self, name: str, min_confidence: float = MATCH_CONFIDENCE[MatchedBy.NORMALIZED]) -> VariableAlignment:
        """Align a name or raise AlignmentAmbiguous below ``min_confidence``."""
        alignment = self.align(name)
        if not alignment.matched or alignment.confidence < min_confidence:
            raise AlignmentAmbiguous(name, confidence=alignment.confidence)
        return alignment

    def canonical_key(self, name: str) -> str:
        """Locus key for a name: normalized canonical name, else normalized input."""
        alignment = self.align(name)
        return normalize_token(alignment.canonical or name)

    def canonical_name(self, name: str) -> str:
        alignment = self.align(name)
        return alignment.canonical or name

    @staticmethod
    def _alignment(name: str, variable: OntologyVariable, matched_by: MatchedBy) -> VariableAlignment:
        return VariableAlignment(
            input=name,
            canonical=variable.canonical_name,
            variable_id=variable.variable_id,
            confidence=MATCH_CONFIDENCE[matched_by],
            matched_by=matched_by,
        )

