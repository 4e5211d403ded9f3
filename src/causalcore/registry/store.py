"""
Model Registry.

``ModelRegistry`` is the collaborator contract the engines depend on.
``InMemoryModelRegistry`` implements it over a dict of models, optionally
backed by a directory with one ``<model_key>.json`` file per model:

    {
      "model": {"model_id": "...", "model_key": "...", "domain": "..."},
      "versions": [{"version": "v1", "is_current": true, "dag": {...}}]
    }

Exactly one version per model is current. ``set_current_version`` performs
the clear-then-set flip under a lock so concurrent promotions cannot leave
zero or two current versions.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from causalcore.errors import InvalidConfigError, ModelNotFound
from causalcore.registry.models import (
    ModelStatus,
    ResolvedModelVersion,
    SCMModel,
    SCMModelVersion,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ModelRegistry(Protocol):
    """Read access to model versions plus the atomic current-version flip."""

    def get_model_version(
        self, model_key: str, version: Optional[str] = None
    ) -> ResolvedModelVersion:
        ...

    def list_models(self, public_only: bool = False) -> List[SCMModel]:
        ...

    def get_current_model_by_domain(self, domain: str) -> Optional[ResolvedModelVersion]:
        ...

    def set_current_version(self, model_id: str, version: str) -> ResolvedModelVersion:
        ...


class InMemoryModelRegistry:
    """Dict-backed registry with optional JSON directory persistence.

    Example:
        >>> registry = InMemoryModelRegistry()
        >>> registry.register(model, [v1, v2])
        >>> registry.get_model_version("smoking-cancer").version.version
        'v1'
    """

    def __init__(self, directory: Optional[Path] = None):
        self._directory = Path(directory) if directory is not None else None
        self._models: Dict[str, SCMModel] = {}
        self._versions: Dict[str, List[SCMModelVersion]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_directory(cls, directory: Path) -> "InMemoryModelRegistry":
        """Load every ``*.json`` model file in a directory."""
        directory = Path(directory)
        registry = cls(directory=directory)
        if not directory.exists():
            logger.warning(f"Registry directory {directory} does not exist; starting empty")
            return registry

        for model_file in sorted(directory.glob("*.json")):
            try:
                payload = json.loads(model_file.read_text())
                model = SCMModel.model_validate(payload["model"])
                versions = [
                    SCMModelVersion.model_validate(item)
                    for item in payload.get("versions", [])
                ]
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValidationError) as exc:
                raise InvalidConfigError(f"Invalid model file {model_file}: {exc}") from exc
            registry.register(model, versions, persist=False)

        logger.info(f"Loaded {len(registry._models)} models from {directory}")
        return registry

    def register(
        self,
        model: SCMModel,
        versions: Iterable[SCMModelVersion] = (),
        persist: bool = True,
    ) -> None:
        """Add a model and its versions.

        If no version is flagged current, the last one becomes current. If
        several are flagged, the last flagged one wins.
        """
        stored = [item.model_copy(update={"model_id": model.model_id}) for item in versions]
        current_indexes = [index for index, item in enumerate(stored) if item.is_current]
        if stored:
            keep = current_indexes[-1] if current_indexes else len(stored) - 1
            stored = [
                item.model_copy(update={"is_current": index == keep})
                for index, item in enumerate(stored)
            ]

        with self._lock:
            self._models[model.model_key] = model
            self._versions[model.model_key] = stored
            if persist:
                self._save_to_disk(model.model_key)

    def add_version(self, model_key: str, version: SCMModelVersion) -> None:
        """Append a non-current version to an existing model."""
        with self._lock:
            model = self._models.get(model_key)
            if model is None:
                raise ModelNotFound(model_key)
            existing = self._versions[model_key]
            if any(item.version == version.version for item in existing):
                raise InvalidConfigError(
                    f"Version '{version.version}' already exists for model '{model_key}'"
                )
            stored = version.model_copy(
                update={"model_id": model.model_id, "is_current": not existing}
            )
            existing.append(stored)
            self._save_to_disk(model_key)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_models(self, public_only: bool = False) -> List[SCMModel]:
        models = list(self._models.values())
        if public_only:
            models = [model for model in models if model.status == ModelStatus.ACTIVE]
        return sorted(models, key=lambda model: (model.domain, model.name, model.model_key))

    def list_versions(self, model_key: str) -> List[SCMModelVersion]:
        if model_key not in self._versions:
            raise ModelNotFound(model_key)
        return list(self._versions[model_key])

    def get_model_version(
        self, model_key: str, version: Optional[str] = None
    ) -> ResolvedModelVersion:
        """Resolve a model by key and a version by label (current if omitted).

        Raises:
            ModelNotFound: Unknown model key or version label
        """
        model = self._models.get(model_key)
        if model is None:
            raise ModelNotFound(model_key, version)

        for item in self._versions.get(model_key, []):
            if (version is None and item.is_current) or item.version == version:
                return ResolvedModelVersion(model=model, version=item)
        raise ModelNotFound(model_key, version)

    def get_current_model_by_domain(self, domain: str) -> Optional[ResolvedModelVersion]:
        """Current version of the first active or draft model in a domain."""
        for model in self.list_models():
            if model.domain != domain or model.status == ModelStatus.DEPRECATED:
                continue
            try:
                return self.get_model_version(model.model_key)
            except ModelNotFound:
                continue
        return None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_current_version(self, model_id: str, version: str) -> ResolvedModelVersion:
        """Atomically make ``version`` the only current version of a model."""
        with self._lock:
            model = next(
                (item for item in self._models.values() if item.model_id == model_id),
                None,
            )
            if model is None:
                raise ModelNotFound(model_id, version)

            versions = self._versions[model.model_key]
            if not any(item.version == version for item in versions):
                raise ModelNotFound(model.model_key, version)

            self._versions[model.model_key] = [
                item.model_copy(update={"is_current": item.version == version})
                for item in versions
            ]
            self._save_to_disk(model.model_key)
            current = next(
                item for item in self._versions[model.model_key] if item.is_current
            )

        logger.info(f"Model {model.model_key} current version set to {version}")
        return ResolvedModelVersion(model=model, version=current)

    def _save_to_disk(self, model_key: str) -> None:
        """Write one model file. Caller holds the lock."""
        if self._directory is None:
            return
        self._directory.mkdir(parents=True, exist_ok=True)
        payload = {
            "model": self._models[model_key].model_dump(mode="json"),
            "versions": [
                item.model_dump(mode="json", by_alias=True)
                for item in self._versions[model_key]
            ],
        }
        target = self._directory / f"{model_key}.json"
        tmp = target.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload, indent=2))
        tmp.replace(target)
