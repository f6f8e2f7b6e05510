"""Helpers shared by CLI commands: logging setup and project loading."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from flarescope.core.config_loader import find_service_config
from flarescope.core.config_resolver import resolve_all_configs
from flarescope.core.manifest_merger import merge_manifest
from flarescope.errors import ConfigParseError
from flarescope.models.bindings import DiscoveredConfig
from flarescope.models.manifest import Manifest

console = Console()


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging through Rich at *level*."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def resolve_root_config(path: Path) -> Path:
    """Accept a descriptor file or a directory containing one."""
    path = Path(path)
    if path.is_dir():
        found = find_service_config(path)
        if found is None:
            console.print(f"[red]No service config found in {path}[/red]")
            raise typer.Exit(code=1)
        return found
    if not path.is_file():
        console.print(f"[red]Config not found:[/red] {path}")
        raise typer.Exit(code=1)
    return path


def load_project(path: Path) -> tuple[list[DiscoveredConfig], Manifest]:
    """Resolve every related descriptor from *path* and merge them."""
    root = resolve_root_config(path)
    try:
        configs = resolve_all_configs(root)
    except ConfigParseError as exc:
        console.print(f"[red]Cannot parse {root}:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    return configs, merge_manifest(configs)
