"""Configuration loading utilities for the causal core workspace."""

from .settings import (
    DEFAULT_CONFIG_PATH,
    AuditSettings,
    EngineSettings,
    Settings,
    WorkspaceSettings,
    bootstrap_settings,
    load_settings,
    resolve_settings,
    save_settings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "AuditSettings",
    "EngineSettings",
    "Settings",
    "WorkspaceSettings",
    "bootstrap_settings",
    "load_settings",
    "resolve_settings",
    "save_settings",
]
