"""Relational database routes.

GET    /d1
GET    /d1/{binding}/schema
GET    /d1/{binding}/tables/{table}
GET    /d1/{binding}/tables/{table}/rows?limit&offset&sort&dir
POST   /d1/{binding}/query                     {sql, params}
POST   /d1/{binding}/tables/{table}/rows       {column: value, ...}
PUT    /d1/{binding}/tables/{table}/rows/{id}  {column: value, ...}
DELETE /d1/{binding}/tables/{table}/rows/{id}
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from flarescope.api.deps import Context
from flarescope.api.encoding import json_response

router = APIRouter(prefix="/d1", tags=["d1"])


class QueryBody(BaseModel):
    sql: str | None = None
    params: list[Any] = []


@router.get("")
def list_databases(ctx: Context) -> dict[str, Any]:
    return {"databases": ctx.relational.list_databases()}


@router.get("/{binding}/schema")
def schema(binding: str, ctx: Context) -> JSONResponse:
    return json_response({"tables": ctx.relational.open(binding).schema()})


@router.get("/{binding}/tables/{table}")
def table_info(binding: str, table: str, ctx: Context) -> JSONResponse:
    return json_response(ctx.relational.open(binding).table_info(table))


@router.get("/{binding}/tables/{table}/rows")
def rows(
    binding: str,
    table: str,
    ctx: Context,
    limit: str | None = None,
    offset: str | None = None,
    sort: str | None = None,
    dir: str | None = None,
) -> JSONResponse:
    page = ctx.relational.open(binding).rows(
        table, limit=limit, offset=offset, sort=sort, direction=dir
    )
    return json_response(page)


@router.post("/{binding}/query")
def query(binding: str, body: QueryBody, ctx: Context) -> JSONResponse:
    result = ctx.relational.open(binding).execute(body.sql, body.params)
    return json_response(result.to_payload())


@router.post("/{binding}/tables/{table}/rows")
def insert_row(
    binding: str, table: str, ctx: Context, data: dict[str, Any] = Body(...)
) -> JSONResponse:
    result = ctx.relational.open(binding).insert_row(table, data)
    return json_response(result.to_payload())


@router.put("/{binding}/tables/{table}/rows/{row_id}")
def update_row(
    binding: str, table: str, row_id: str, ctx: Context, data: dict[str, Any] = Body(...)
) -> JSONResponse:
    result = ctx.relational.open(binding).update_row(table, row_id, data)
    return json_response(result.to_payload())


@router.delete("/{binding}/tables/{table}/rows/{row_id}")
def delete_row(binding: str, table: str, row_id: str, ctx: Context) -> JSONResponse:
    result = ctx.relational.open(binding).delete_row(table, row_id)
    return json_response(result.to_payload())
