"""FastAPI application factory for the dashboard API.

``create_app()`` is the single composition root: it builds (or receives)
the ``AppContext``, wires CORS, error handlers and routers, and attaches
a ``LogBufferHandler`` for the app's lifetime.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flarescope import __version__
from flarescope.api.context import AppContext, load_embedded_manifest
from flarescope.api.errors import install_error_handlers
from flarescope.bridge.actor_bridge import ActorStorageBridge, RuntimeFetchProxy
from flarescope.config import ScopeSettings
from flarescope.config import settings as default_settings
from flarescope.core.log_buffer import LogBufferHandler, LogLevel, LogSource
from flarescope.core.state_scanner import StateScanner
from flarescope.models.manifest import Manifest

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    ctx: AppContext = app.state.context
    handler = LogBufferHandler(ctx.log_buffer)
    package_logger = logging.getLogger("flarescope")
    package_logger.addHandler(handler)
    ctx.log_buffer.add("Flarescope API started", level=LogLevel.INFO, source=LogSource.SYSTEM)
    try:
        yield
    finally:
        package_logger.removeHandler(handler)
        ctx.close()


def create_app(
    settings: ScopeSettings | None = None,
    *,
    manifest: Manifest | None = None,
    scanner: StateScanner | None = None,
    bridge: ActorStorageBridge | None = None,
    runtime_proxy: RuntimeFetchProxy | None = None,
    context: AppContext | None = None,
) -> FastAPI:
    """Build the dashboard API.

    Parameters
    ----------
    settings:
        Overrides the module-level settings (useful for testing).
    manifest:
        Merged manifest.  When omitted it is read from the
        ``FLARESCOPE_MANIFEST`` environment variable.
    scanner:
        State scanner; defaults to one searching from the working
        directory with the settings' layout.
    context:
        A ready ``AppContext``; all other arguments are then ignored.

    Raises
    ------
    ValueError
        If no context, no manifest and no embedded manifest are available.
    """
    settings = settings or default_settings
    if context is None:
        manifest = manifest or load_embedded_manifest()
        if manifest is None:
            raise ValueError("A manifest is required (pass one or set FLARESCOPE_MANIFEST)")
        extra: dict[str, Any] = {"bridge": bridge, "runtime_proxy": runtime_proxy}
        if scanner is None:
            context = AppContext.build(manifest, settings=settings, **extra)
        else:
            context = AppContext(manifest, scanner, settings=settings, **extra)

    app = FastAPI(
        title="Flarescope API",
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{API_PREFIX}/docs",
        openapi_url=f"{API_PREFIX}/openapi.json",
    )
    app.state.settings = context.settings
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    from flarescope.api.routes import bindings, d1, do, health, kv, logs, queues, r2

    for module in (health, bindings, d1, kv, r2, do, queues, logs):
        app.include_router(module.router, prefix=API_PREFIX)

    @app.get("/", include_in_schema=False)
    def index() -> dict[str, Any]:
        return {
            "message": "Flarescope API",
            "endpoints": [
                f"{API_PREFIX}/{name}"
                for name in ("health", "bindings", "d1", "kv", "r2", "do", "queues", "logs")
            ],
        }

    return app
