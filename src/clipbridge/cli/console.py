"""Shared console utilities for CLI commands."""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from clipbridge.config import ClipBridgeConfig, ConfigError, load_config

# Shared console instance for all CLI commands
console = Console()


def error(msg: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]{escape(msg)}[/red]")


def success(msg: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]{escape(msg)}[/green]")


def dim(msg: str) -> None:
    """Print a dimmed message."""
    console.print(f"[dim]{escape(msg)}[/dim]")


def get_config(config_path: Path | None) -> ClipBridgeConfig:
    """Load configuration or exit with an error message."""
    try:
        return load_config(config_path)
    except (FileNotFoundError, ConfigError) as e:
        error(str(e))
        raise typer.Exit(1) from None
