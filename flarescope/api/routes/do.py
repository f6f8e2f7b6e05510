"""Actor (Durable Object) routes.

Storage inspection cannot open host files from inside the runtime, so
every ``storage`` route is forwarded through the ``ActorStorageBridge`` and
the storage server's response is relayed unchanged.  ``fetch/*`` goes to
the live service through the ``RuntimeFetchProxy``.

GET  /do
GET  /do/{binding}/storage/instances
GET  /do/{binding}/{instance_id}/storage/schema
GET  /do/{binding}/{instance_id}/storage/tables/{table}
GET  /do/{binding}/{instance_id}/storage/tables/{table}/rows?limit&offset&sort&dir
GET  /do/{binding}/{instance_id}/storage/kv?prefix&limit&offset
POST /do/{binding}/{instance_id}/storage/query   {sql, params}
POST /do/{binding}/id                            {id?} | {name?} | {}
ANY  /do/{binding}/{instance_id}/fetch/{path}
"""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from flarescope.api.deps import Context
from flarescope.bridge.actor_bridge import strip_hop_headers
from flarescope.core.hasher import resolve_actor_id
from flarescope.models.bindings import BindingKind

router = APIRouter(prefix="/do", tags=["do"])

_FETCH_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class IdBody(BaseModel):
    id: str | None = None
    name: str | None = None


def relay(response: httpx.Response) -> Response:
    """Hand a forwarded response back without altering status or body."""
    return Response(
        content=response.content,
        status_code=response.status_code,
        headers=strip_hop_headers(response.headers),
    )


@router.get("")
def list_classes(ctx: Context) -> dict[str, Any]:
    return {
        "durableObjects": [
            {
                "binding": b.name,
                "class_name": b.class_name,
                "script_name": b.script_name or None,
            }
            for b in ctx.manifest.actors
        ]
    }


# ---------------------------------------------------------------------------
# Storage (bridged)
# ---------------------------------------------------------------------------


@router.get("/{binding}/storage/instances")
def instances(binding: str, ctx: Context) -> Response:
    return relay(ctx.bridge.instances(binding))


@router.get("/{binding}/{instance_id}/storage/schema")
def schema(binding: str, instance_id: str, ctx: Context) -> Response:
    return relay(ctx.bridge.schema(binding, instance_id))


@router.get("/{binding}/{instance_id}/storage/tables/{table}")
def table_info(binding: str, instance_id: str, table: str, ctx: Context) -> Response:
    return relay(ctx.bridge.table(binding, instance_id, table))


@router.get("/{binding}/{instance_id}/storage/tables/{table}/rows")
def rows(binding: str, instance_id: str, table: str, request: Request, ctx: Context) -> Response:
    query = list(request.query_params.multi_items())
    return relay(ctx.bridge.rows(binding, instance_id, table, query))


@router.get("/{binding}/{instance_id}/storage/kv")
def kv(binding: str, instance_id: str, request: Request, ctx: Context) -> Response:
    query = list(request.query_params.multi_items())
    return relay(ctx.bridge.kv(binding, instance_id, query))


@router.post("/{binding}/{instance_id}/storage/query")
async def query(binding: str, instance_id: str, request: Request, ctx: Context) -> Response:
    body = await request.body()
    headers = {"content-type": request.headers.get("content-type", "application/json")}
    response = await run_in_threadpool(ctx.bridge.query, binding, instance_id, body, headers)
    return relay(response)


# ---------------------------------------------------------------------------
# Instance ids and live requests
# ---------------------------------------------------------------------------


@router.post("/{binding}/id")
def resolve_id(binding: str, ctx: Context, body: IdBody | None = None) -> dict[str, str]:
    """Explicit id (validated), name-derived id, or a fresh one."""
    entry = ctx.registry.lookup(binding, BindingKind.ACTOR)
    body = body or IdBody()
    return {
        "id": resolve_actor_id(entry.declaration.class_name, actor_id=body.id, name=body.name)
    }


@router.api_route("/{binding}/{instance_id}/fetch/{path:path}", methods=_FETCH_METHODS)
async def fetch(
    binding: str, instance_id: str, path: str, request: Request, ctx: Context
) -> Response:
    ctx.registry.lookup(binding, BindingKind.ACTOR)
    body = await request.body()
    response = await run_in_threadpool(
        ctx.runtime_proxy.fetch,
        binding,
        instance_id,
        request.method,
        path,
        query=list(request.query_params.multi_items()),
        body=body,
        headers=dict(request.headers),
    )
    return relay(response)
