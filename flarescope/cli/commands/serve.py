"""``flarescope serve`` and ``flarescope storage-server``."""

from __future__ import annotations

from pathlib import Path

import typer
import uvicorn

from flarescope.api.app import create_app
from flarescope.api.storage_server import StorageServerThread, create_storage_app, find_free_port
from flarescope.bridge.actor_bridge import ActorStorageBridge
from flarescope.cli._common import configure_logging, console, load_project
from flarescope.config import settings
from flarescope.core.state_scanner import StateScanner


def _scanner(config: Path, state_dir: Path | None) -> StateScanner:
    configs, manifest = load_project(config)
    return StateScanner(
        configs[0].path.parent,
        manifest,
        state_dir=state_dir or settings.state_dir,
        layout=settings.layout,
        max_hops=settings.max_parent_hops,
    )


def serve_cmd(
    config: Path = typer.Argument(Path("."), help="Service config file or its directory."),
    host: str | None = typer.Option(None, "--host", help="Dashboard API host."),
    port: int | None = typer.Option(None, "--port", "-p", help="Dashboard API port."),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="Explicit state root."),
) -> None:
    """Start the actor storage server and the dashboard API."""
    configure_logging(settings.log_level)
    scanner = _scanner(config, state_dir)

    storage = StorageServerThread(
        create_storage_app(scanner, busy_timeout_ms=settings.busy_timeout_ms),
        host=settings.storage_host,
        port=settings.storage_port,
    ).start()

    app = create_app(
        settings,
        manifest=scanner.manifest,
        scanner=scanner,
        bridge=ActorStorageBridge(
            settings.actor_storage_url or storage.url,
            timeout_seconds=settings.bridge_timeout_seconds,
            connect_timeout_seconds=settings.bridge_connect_timeout_seconds,
        ),
    )

    api_host = host or settings.host
    api_port = port or settings.port
    console.print(f"[bold green]Flarescope API[/bold green] on http://{api_host}:{api_port}/api")
    try:
        uvicorn.run(app, host=api_host, port=api_port, log_level=settings.log_level.lower())
    finally:
        storage.stop()


def storage_server_cmd(
    config: Path = typer.Argument(Path("."), help="Service config file or its directory."),
    host: str | None = typer.Option(None, "--host", help="Listen host."),
    port: int | None = typer.Option(None, "--port", "-p", help="Listen port (default: a free port)."),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="Explicit state root."),
) -> None:
    """Run only the host-side actor storage server."""
    configure_logging(settings.log_level)
    scanner = _scanner(config, state_dir)
    listen_host = host or settings.storage_host
    listen_port = port or settings.storage_port or find_free_port(listen_host)
    console.print(
        f"[bold green]Actor storage server[/bold green] on http://{listen_host}:{listen_port}"
    )
    console.print(f"[dim]export FLARESCOPE_ACTOR_STORAGE_URL=http://{listen_host}:{listen_port}[/dim]")
    uvicorn.run(
        create_storage_app(scanner, busy_timeout_ms=settings.busy_timeout_ms),
        host=listen_host,
        port=listen_port,
        log_level=settings.log_level.lower(),
    )
