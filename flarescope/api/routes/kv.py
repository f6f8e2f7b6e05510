"""Key-value namespace routes.

GET    /kv
GET    /kv/{binding}/keys?prefix&limit&cursor
GET    /kv/{binding}/keys/{key}?type=text|json|arrayBuffer
PUT    /kv/{binding}/keys/{key}   {value, metadata?, expirationTtl?|expiration?}
DELETE /kv/{binding}/keys/{key}
POST   /kv/{binding}/bulk-delete  {keys: [...]}
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from flarescope.api.deps import Context
from flarescope.api.encoding import json_response
from flarescope.errors import BadRequestError

router = APIRouter(prefix="/kv", tags=["kv"])


class PutBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: Any = None
    metadata: Any = None
    expiration_ttl: int | None = Field(default=None, alias="expirationTtl")
    expiration: int | None = None


class BulkDeleteBody(BaseModel):
    keys: list[str] = []


@router.get("")
def list_namespaces(ctx: Context) -> dict[str, Any]:
    return {"namespaces": ctx.key_value.list_namespaces()}


@router.get("/{binding}/keys")
def list_keys(
    binding: str,
    ctx: Context,
    prefix: str | None = None,
    limit: str | None = None,
    cursor: str | None = None,
) -> JSONResponse:
    return json_response(ctx.key_value.open(binding).list_keys(prefix, limit, cursor))


@router.get("/{binding}/keys/{key:path}")
def get_value(binding: str, key: str, ctx: Context, type: str = "text") -> JSONResponse:
    return json_response(ctx.key_value.open(binding).get(key, type))


@router.put("/{binding}/keys/{key:path}")
def put_value(binding: str, key: str, body: PutBody, ctx: Context) -> dict[str, Any]:
    if body.value is None:
        raise BadRequestError("value is required")
    value = body.value if isinstance(body.value, str) else json.dumps(body.value)
    ctx.key_value.open(binding).put(
        key,
        value,
        metadata=body.metadata,
        expiration_ttl=body.expiration_ttl,
        expiration=body.expiration,
    )
    return {"success": True}


@router.delete("/{binding}/keys/{key:path}")
def delete_value(binding: str, key: str, ctx: Context) -> dict[str, Any]:
    deleted = ctx.key_value.open(binding).delete(key)
    return {"success": True, "deleted": deleted}


@router.post("/{binding}/bulk-delete")
def bulk_delete(binding: str, body: BulkDeleteBody, ctx: Context) -> dict[str, Any]:
    return {"success": True, "deleted": ctx.key_value.open(binding).bulk_delete(body.keys)}
