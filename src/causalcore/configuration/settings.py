"""Typed settings management for the causal core workspace.

Workspace locations (model registry, audit trail, variable ontology) and
engine caps are wrapped in Pydantic models so CLI commands and services can
rely on validated settings. Settings persist as JSON at
``~/.causalcore/config.json`` and honour ``CAUSALCORE_*`` environment
overrides.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from causalcore.config import AutopsyConfig, CounterfactualConfig, EngineConfig, GraphConfig
from causalcore.errors import InvalidConfigError

DEFAULT_HOME = Path.home() / ".causalcore"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.json"


class WorkspaceSettings(BaseModel):
    """Where models, audit records and the ontology live."""

    workspace_path: Path = Field(default=DEFAULT_HOME / "workspace")
    registry_dir: Optional[Path] = Field(
        default=None, description="Model registry JSON directory (defaults under workspace)"
    )
    audit_dir: Optional[Path] = Field(
        default=None, description="Audit trail directory (defaults under workspace)"
    )
    ontology_path: Optional[Path] = Field(
        default=None, description="Optional variable ontology JSON file"
    )

    @property
    def resolved_registry_dir(self) -> Path:
        return self.registry_dir or self.workspace_path / "models"

    @property
    def resolved_audit_dir(self) -> Path:
        return self.audit_dir or self.workspace_path / "audit"


class AuditSettings(BaseModel):
    """Audit trail toggles."""

    enabled: bool = Field(True, description="Record traces, reports and decisions")
    retention_days: int = Field(90, ge=1, le=730)
    max_log_bytes: int = Field(5 * 1024 * 1024, ge=1024)


class EngineSettings(BaseModel):
    """Caps and thresholds forwarded to the reasoning engines."""

    max_nodes: int = Field(300, ge=1)
    max_paths_per_query: int = Field(256, ge=1)
    sensitivity: float = Field(1.0, gt=0.0)
    necessity_threshold: float = Field(0.5, ge=0.0, le=1.0)

    def to_engine_config(self) -> EngineConfig:
        return EngineConfig(
            graph=GraphConfig(
                max_nodes=self.max_nodes, max_paths_per_query=self.max_paths_per_query
            ),
            counterfactual=CounterfactualConfig(sensitivity=self.sensitivity),
            autopsy=AutopsyConfig(necessity_threshold=self.necessity_threshold),
        )


class Settings(BaseModel):
    """Root configuration state."""

    workspace: WorkspaceSettings = Field(default_factory=WorkspaceSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)

    @field_validator("workspace", mode="before")
    @classmethod
    def _default_workspace(cls, value: Any) -> Any:
        return {} if value is None else value

    def engine_config(self) -> EngineConfig:
        return self.engine.to_engine_config()


def load_settings(path: Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Load settings from disk or raise if invalid."""
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found at {path}")
    try:
        payload = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise InvalidConfigError(f"Settings file {path} is not valid JSON: {exc}") from exc
    try:
        return Settings.model_validate(payload)
    except ValidationError as exc:
        raise InvalidConfigError(f"Invalid configuration: {exc}") from exc


def save_settings(settings: Settings, path: Path = DEFAULT_CONFIG_PATH) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.model_dump(mode="json"), indent=2))


def bootstrap_settings(
    *,
    path: Path = DEFAULT_CONFIG_PATH,
    overrides: Optional[Dict[str, Any]] = None,
    create_directories: bool = True,
) -> Settings:
    """Create or load settings respecting explicit and environment overrides."""
    if path.exists():
        settings = load_settings(path)
    else:
        settings = Settings()
        save_settings(settings, path)

    resolved = _with_overrides(settings, overrides or {})
    if create_directories:
        _ensure_directories(resolved)
    save_settings(resolved, path)
    return resolved


def resolve_settings(path: Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Read-only settings for a single command.

    Loads ``path`` when it exists (defaults otherwise) and applies
    ``CAUSALCORE_*`` environment overrides. Nothing is written to disk.
    """
    settings = load_settings(path) if path.exists() else Settings()
    return _with_overrides(settings, {})


def _with_overrides(settings: Settings, overrides: Dict[str, Any]) -> Settings:
    merged = settings.model_dump(mode="python")
    merged = _apply_overrides(merged, overrides)
    merged = _apply_env_overrides(merged)
    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        raise InvalidConfigError(f"Invalid configuration after overrides: {exc}") from exc


def _apply_overrides(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = base.copy()
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    workspace = data.setdefault("workspace", {})
    _set_env_override(workspace, "workspace_path", "CAUSALCORE_WORKSPACE")
    _set_env_override(workspace, "registry_dir", "CAUSALCORE_REGISTRY_DIR")
    _set_env_override(workspace, "audit_dir", "CAUSALCORE_AUDIT_DIR")
    _set_env_override(workspace, "ontology_path", "CAUSALCORE_ONTOLOGY")

    audit = data.setdefault("audit", {})
    _set_env_override(audit, "enabled", "CAUSALCORE_ENABLE_AUDIT", cast_bool=True)
    _set_env_override(audit, "retention_days", "CAUSALCORE_AUDIT_RETENTION", cast_int=True)

    engine = data.setdefault("engine", {})
    _set_env_override(engine, "max_nodes", "CAUSALCORE_MAX_NODES", cast_int=True)
    _set_env_override(engine, "max_paths_per_query", "CAUSALCORE_MAX_PATHS", cast_int=True)
    _set_env_override(engine, "sensitivity", "CAUSALCORE_SENSITIVITY", cast_float=True)
    _set_env_override(
        engine, "necessity_threshold", "CAUSALCORE_NECESSITY_THRESHOLD", cast_float=True
    )
    return data


def _set_env_override(
    mapping: Dict[str, Any],
    key: str,
    env_name: str,
    *,
    cast_bool: bool = False,
    cast_int: bool = False,
    cast_float: bool = False,
) -> None:
    raw = os.getenv(env_name)
    if raw is None:
        return
    try:
        if cast_bool:
            mapping[key] = raw.lower() in {"1", "true", "yes"}
        elif cast_int:
            mapping[key] = int(raw)
        elif cast_float:
            mapping[key] = float(raw)
        else:
            mapping[key] = raw
    except ValueError as exc:
        raise InvalidConfigError(f"Environment variable {env_name}={raw!r} is invalid") from exc


def _ensure_directories(settings: Settings) -> None:
    settings.workspace.workspace_path.mkdir(parents=True, exist_ok=True)
    settings.workspace.resolved_registry_dir.mkdir(parents=True, exist_ok=True)
    settings.workspace.resolved_audit_dir.mkdir(parents=True, exist_ok=True)
