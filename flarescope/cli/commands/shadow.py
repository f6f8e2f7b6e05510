"""``flarescope shadow``: write the shadow descriptor for the dashboard API."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from flarescope.cli._common import console, load_project
from flarescope.core.manifest_merger import binding_summary
from flarescope.core.shadow_config import setup_shadow_dir


def shadow_cmd(
    entry: Path = typer.Option(
        ..., "--entry", "-e", exists=True, dir_okay=False, help="Bundled dashboard API entry point."
    ),
    config: Path = typer.Argument(Path("."), help="Service config file or its directory."),
    attached: bool = typer.Option(
        False,
        "--attached",
        help="Only share bindings with an already running service (no proxy binding).",
    ),
    storage_url: str | None = typer.Option(
        None, "--storage-url", help="Address of the actor storage server to embed."
    ),
) -> None:
    """Generate ``.flarescope/wrangler.toml`` next to the root config."""
    configs, _ = load_project(config)
    setup = setup_shadow_dir(
        configs, entry, primary=not attached, storage_bridge_url=storage_url
    )
    manifest = setup.manifest
    console.print(
        Panel(
            "\n".join(
                [
                    "[bold green]Shadow config written[/bold green]",
                    f"Config:      {setup.shadow_config_path}",
                    f"Entry point: {setup.entry_point_path}",
                    f"Services:    {', '.join(s.name for s in manifest.services)}",
                    f"Bindings:    {', '.join(binding_summary(manifest)) or 'none'}",
                    f"Mode:        {'attached' if attached else 'primary'}",
                ]
            ),
            title="Flarescope",
            border_style="green",
        )
    )
