"""Object-store bucket routes.

GET    /r2
GET    /r2/{binding}/objects?prefix&limit&cursor&delimiter
GET    /r2/{binding}/objects/{key}/meta
GET    /r2/{binding}/objects/{key}          raw bytes
PUT    /r2/{binding}/objects/{key}          raw body, Content-Type, x-amz-meta-*
DELETE /r2/{binding}/objects/{key}
POST   /r2/{binding}/bulk-delete            {keys: [...]}
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from flarescope.api.deps import Context
from flarescope.api.encoding import json_response

router = APIRouter(prefix="/r2", tags=["r2"])


class BulkDeleteBody(BaseModel):
    keys: list[str] = []


@router.get("")
def list_buckets(ctx: Context) -> dict[str, Any]:
    return {"buckets": ctx.object_store.list_buckets()}


@router.get("/{binding}/objects")
def list_objects(
    binding: str,
    ctx: Context,
    prefix: str | None = None,
    limit: str | None = None,
    cursor: str | None = None,
    delimiter: str | None = None,
) -> JSONResponse:
    listing = ctx.object_store.open(binding).list_objects(prefix, limit, cursor, delimiter)
    return json_response(listing)


# Registered before the catch-all object route so ".../meta" is not read as a key
@router.get("/{binding}/objects/{key:path}/meta")
def head_object(binding: str, key: str, ctx: Context) -> JSONResponse:
    return json_response(ctx.object_store.open(binding).head(key))


@router.get("/{binding}/objects/{key:path}")
def get_object(binding: str, key: str, ctx: Context) -> Response:
    body = ctx.object_store.open(binding).get(key)
    return Response(content=body.data, headers=body.headers)


@router.put("/{binding}/objects/{key:path}")
async def put_object(binding: str, key: str, request: Request, ctx: Context) -> dict[str, Any]:
    data = await request.body()
    handle = await run_in_threadpool(ctx.object_store.open, binding)
    result = await run_in_threadpool(
        handle.put,
        key,
        data,
        content_type=request.headers.get("content-type"),
        headers=dict(request.headers),
    )
    return {"success": True, **result}


@router.delete("/{binding}/objects/{key:path}")
def delete_object(binding: str, key: str, ctx: Context) -> dict[str, Any]:
    deleted = ctx.object_store.open(binding).delete(key)
    return {"success": True, "deleted": deleted}


@router.post("/{binding}/bulk-delete")
def bulk_delete(binding: str, body: BulkDeleteBody, ctx: Context) -> dict[str, Any]:
    return {"success": True, "deleted": ctx.object_store.open(binding).bulk_delete(body.keys)}
