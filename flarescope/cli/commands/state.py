"""``flarescope state``: locate the runtime's state and show file matches."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from flarescope.cli._common import console, load_project
from flarescope.config import settings
from flarescope.core.manifest_merger import KIND_LABELS
from flarescope.core.state_scanner import StateScanner
from flarescope.models.bindings import BindingKind

_STATE_KINDS = (
    BindingKind.RELATIONAL,
    BindingKind.KEY_VALUE,
    BindingKind.OBJECT_STORE,
    BindingKind.ACTOR,
)


def state_cmd(
    config: Path = typer.Argument(Path("."), help="Service config file or its directory."),
    state_dir: Path | None = typer.Option(
        None, "--state-dir", help="Explicit state root (skips the upward search)."
    ),
) -> None:
    """List the state files the runtime created and the binding each matched."""
    configs, manifest = load_project(config)
    scanner = StateScanner(
        configs[0].path.parent,
        manifest,
        state_dir=state_dir or settings.state_dir,
        layout=settings.layout,
        max_hops=settings.max_parent_hops,
    )
    inventory = scanner.scan()
    if inventory.state_root is None:
        console.print("[yellow]No runtime state found.[/yellow] Run the service once to create it.")
        raise typer.Exit(code=1)

    table = Table(title=f"State under {inventory.state_root}")
    table.add_column("Type", style="green")
    table.add_column("File")
    table.add_column("Binding", style="cyan")
    table.add_column("Instance")
    for kind in _STATE_KINDS:
        label = KIND_LABELS[kind]
        for file in inventory.files_of(kind):
            filename = f"{file.class_dir}/{file.filename}" if file.class_dir else file.filename
            binding = file.matched_binding_name or "[dim]unmatched[/dim]"
            table.add_row(label, filename, binding, file.instance_id or "")

    if table.row_count:
        console.print(table)
    else:
        console.print("[dim]State root exists but holds no database files yet.[/dim]")
