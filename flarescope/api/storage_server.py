"""Host-side actor storage server.

Runs next to the runtime on the host, where the actor storage files can be
opened, and serves the requests the ``ActorStorageBridge`` forwards:

GET  /do/{binding}/instances
GET  /do/{binding}/{instance_id}/schema
GET  /do/{binding}/{instance_id}/tables/{table}
GET  /do/{binding}/{instance_id}/tables/{table}/rows?limit&offset&sort&dir
GET  /do/{binding}/{instance_id}/kv?prefix&limit&offset
POST /do/{binding}/{instance_id}/query   {sql, params}
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from flarescope import __version__
from flarescope.api.encoding import json_response
from flarescope.api.errors import install_error_handlers
from flarescope.core.state_scanner import StateScanner
from flarescope.storage._sqlite import DEFAULT_BUSY_TIMEOUT_MS
from flarescope.storage.actor_storage import ActorStorageAccessor

logger = logging.getLogger(__name__)


class QueryBody(BaseModel):
    sql: str | None = None
    params: list[Any] = []


def _accessor(request: Request) -> ActorStorageAccessor:
    return request.app.state.accessor


router = APIRouter(prefix="/do")


@router.get("/{binding}/instances")
def instances(binding: str, accessor: ActorStorageAccessor = Depends(_accessor)) -> dict[str, Any]:
    return accessor.list_instances(binding)


@router.get("/{binding}/{instance_id}/schema")
def schema(
    binding: str, instance_id: str, accessor: ActorStorageAccessor = Depends(_accessor)
) -> JSONResponse:
    return json_response({"tables": accessor.open(binding, instance_id).schema()})


@router.get("/{binding}/{instance_id}/tables/{table}")
def table_info(
    binding: str,
    instance_id: str,
    table: str,
    accessor: ActorStorageAccessor = Depends(_accessor),
) -> JSONResponse:
    return json_response(accessor.open(binding, instance_id).table_info(table))


@router.get("/{binding}/{instance_id}/tables/{table}/rows")
def rows(
    binding: str,
    instance_id: str,
    table: str,
    limit: str | None = None,
    offset: str | None = None,
    sort: str | None = None,
    dir: str | None = None,
    accessor: ActorStorageAccessor = Depends(_accessor),
) -> JSONResponse:
    page = accessor.open(binding, instance_id).rows(
        table, limit=limit, offset=offset, sort=sort, direction=dir
    )
    return json_response(page)


@router.get("/{binding}/{instance_id}/kv")
def kv(
    binding: str,
    instance_id: str,
    prefix: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
    accessor: ActorStorageAccessor = Depends(_accessor),
) -> JSONResponse:
    return json_response(accessor.open(binding, instance_id).kv_entries(prefix, limit, offset))


@router.post("/{binding}/{instance_id}/query")
def query(
    binding: str,
    instance_id: str,
    body: QueryBody,
    accessor: ActorStorageAccessor = Depends(_accessor),
) -> JSONResponse:
    result = accessor.open(binding, instance_id).execute(body.sql, body.params)
    return json_response(result.to_payload())


def create_storage_app(
    scanner: StateScanner, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
) -> FastAPI:
    """Build the storage server for the actor bindings in ``scanner.manifest``."""
    app = FastAPI(title="Flarescope actor storage", version=__version__, docs_url=None, redoc_url=None)
    app.state.accessor = ActorStorageAccessor(scanner, busy_timeout_ms=busy_timeout_ms)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    install_error_handlers(app)
    app.include_router(router)
    return app


# ---------------------------------------------------------------------------
# Background serving
# ---------------------------------------------------------------------------


def find_free_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for an unused TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


class StorageServerThread:
    """Runs a storage app under uvicorn in a daemon thread."""

    def __init__(self, app: FastAPI, *, host: str = "127.0.0.1", port: int = 0) -> None:
        self.host = host
        self.port = port or find_free_port(host)
        config = uvicorn.Config(app, host=self.host, port=self.port, log_level="warning")
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(target=self._server.run, name="flarescope-storage", daemon=True)

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self, timeout: float = 10.0) -> StorageServerThread:
        """Start serving and wait until the socket accepts connections."""
        self._thread.start()
        deadline = time.monotonic() + timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                raise RuntimeError(f"Actor storage server failed to start on {self.url}")
            time.sleep(0.05)
        logger.info("Actor storage server listening on %s", self.url)
        return self

    def stop(self, timeout: float = 5.0) -> None:
        self._server.should_exit = True
        self._thread.join(timeout)
