"""Main Typer application: imports and registers all CLI commands.

Entry point: ``flarescope`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import typer

from flarescope.cli._common import configure_logging
from flarescope.cli.commands.bindings import bindings_cmd
from flarescope.cli.commands.serve import serve_cmd, storage_server_cmd
from flarescope.cli.commands.shadow import shadow_cmd
from flarescope.cli.commands.state import state_cmd
from flarescope.config import settings

app = typer.Typer(
    name="flarescope",
    help="Flarescope: inspect and edit the local state of a serverless service.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="bindings", help="Show the merged bindings of related services.")(bindings_cmd)
app.command(name="shadow", help="Write the shadow config for the dashboard API.")(shadow_cmd)
app.command(name="state", help="Locate runtime state and show binding matches.")(state_cmd)
app.command(name="serve", help="Start the storage server and dashboard API.")(serve_cmd)
app.command(name="storage-server", help="Run only the host-side actor storage server.")(
    storage_server_cmd
)


@app.callback()
def _root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    configure_logging("DEBUG" if verbose else settings.log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
