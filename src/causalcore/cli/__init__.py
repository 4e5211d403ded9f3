"""Command line entry points for the causal core."""

from typer import Typer

from ..configuration.cli import config_app
from .scm import scm_app


cli = Typer(help="Causal reasoning core command line tools")
cli.add_typer(config_app, name="config")
cli.add_typer(scm_app, name="scm")

__all__ = ["cli", "config_app", "scm_app"]
