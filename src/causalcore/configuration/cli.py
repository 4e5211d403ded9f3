"""CLI commands for managing causal core settings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from causalcore.configuration.settings import (
    DEFAULT_CONFIG_PATH,
    Settings,
    bootstrap_settings,
    load_settings,
    save_settings,
)
from causalcore.errors import InvalidConfigError

config_app = typer.Typer(help="Manage causal core configuration")


@config_app.command("init")
def init_config(
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to config file"),
    workspace_path: Optional[Path] = typer.Option(None, help="Override workspace directory"),
    registry_dir: Optional[Path] = typer.Option(None, help="Override model registry directory"),
    audit_dir: Optional[Path] = typer.Option(None, help="Override audit trail directory"),
    ontology_path: Optional[Path] = typer.Option(None, help="Variable ontology JSON file"),
) -> None:
    """Initialize the settings file."""
    workspace = {}
    if workspace_path:
        workspace["workspace_path"] = str(workspace_path)
    if registry_dir:
        workspace["registry_dir"] = str(registry_dir)
    if audit_dir:
        workspace["audit_dir"] = str(audit_dir)
    if ontology_path:
        workspace["ontology_path"] = str(ontology_path)

    overrides = {"workspace": workspace} if workspace else {}
    settings = bootstrap_settings(path=config_path, overrides=overrides)
    typer.echo(f"Configuration initialized at {config_path}")
    typer.echo(_summarize_settings(settings))


@config_app.command("show")
def show_config(config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to config")) -> None:
    """Display effective configuration."""
    settings = load_settings(config_path)
    typer.echo(_summarize_settings(settings))


@config_app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Configuration key, e.g. engine.max_nodes"),
    value: str = typer.Argument(..., help="New value"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to config"),
) -> None:
    """Update a configuration value."""
    settings = load_settings(config_path)
    payload = settings.model_dump(mode="python")
    _assign(payload, key.split("."), value)
    try:
        updated = Settings.model_validate(payload)
    except ValueError as exc:
        typer.echo(f"❌ Invalid value for {key}: {exc}", err=True)
        raise typer.Exit(code=1)
    save_settings(updated, config_path)
    typer.echo(f"Updated {key}")


@config_app.command("validate")
def validate_config(
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to config file"),
) -> None:
    """Validate configuration file for correctness."""
    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, InvalidConfigError) as e:
        typer.echo(f"❌ Configuration invalid: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"✅ Configuration valid at {config_path}")
    typer.echo(f"   Workspace: {settings.workspace.workspace_path}")
    typer.echo(f"   Registry: {settings.workspace.resolved_registry_dir}")
    typer.echo(f"   Audit trail: {settings.workspace.resolved_audit_dir}")


def _summarize_settings(settings: Settings) -> str:
    return json.dumps(settings.model_dump(mode="json"), indent=2)


def _assign(payload: dict, keys: list[str], value: str) -> None:
    current = payload
    for key in keys[:-1]:
        current = current.setdefault(key, {})
    current[keys[-1]] = value
