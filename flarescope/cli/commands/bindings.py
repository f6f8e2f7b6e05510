"""``flarescope bindings``: show the merged binding manifest."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from flarescope.cli._common import console, load_project
from flarescope.core.manifest_merger import KIND_LABELS, build_actor_owner_map, looks_like_secret
from flarescope.models.bindings import BindingKind


def bindings_cmd(
    config: Path = typer.Argument(Path("."), help="Service config file or its directory."),
    as_json: bool = typer.Option(False, "--json", help="Print the manifest as JSON."),
) -> None:
    """Resolve related service configs and print their merged bindings."""
    configs, manifest = load_project(config)

    if as_json:
        console.print_json(manifest.to_json())
        return

    services = Table(title=f"Services ({len(configs)})")
    services.add_column("Name", style="cyan")
    services.add_column("Config")
    for discovered in configs:
        services.add_row(discovered.config.display_name, str(discovered.path))
    console.print(services)

    owners = build_actor_owner_map(configs)
    table = Table(title=f"Bindings of {manifest.name}")
    table.add_column("Binding", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Target")
    for kind, label in KIND_LABELS.items():
        for binding in manifest.bindings_of(kind):
            if kind is BindingKind.ACTOR:
                owner = owners.get(binding.class_name, "?")
                target = f"{binding.class_name} (owner: {owner})"
            elif kind is BindingKind.VARIABLE:
                value = binding.target("value", "")
                target = "********" if looks_like_secret(binding.name, value) else str(value)
            else:
                target = ", ".join(f"{k}={v}" for k, v in binding.targets.items())
            table.add_row(binding.name, label, target)

    if table.row_count:
        console.print(table)
    else:
        console.print("[dim]No bindings declared.[/dim]")
