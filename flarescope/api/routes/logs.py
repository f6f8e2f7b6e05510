"""Log routes over the context's ``LogBuffer``."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from flarescope.api.deps import Context
from flarescope.api.encoding import json_response
from flarescope.core.log_buffer import LogLevel, LogSource

router = APIRouter(prefix="/logs", tags=["logs"])


class LogBody(BaseModel):
    message: str
    level: LogLevel = LogLevel.LOG
    source: LogSource = LogSource.WORKER
    data: Any = None


@router.get("")
def recent_logs(ctx: Context, limit: int = 100) -> JSONResponse:
    entries = ctx.log_buffer.recent(limit)
    return json_response({"logs": [e.model_dump(mode="json") for e in entries]})


@router.post("")
def add_log(body: LogBody, ctx: Context) -> JSONResponse:
    entry = ctx.log_buffer.add(body.message, level=body.level, source=body.source, data=body.data)
    return json_response({"success": True, "log": entry.model_dump(mode="json")})


@router.delete("")
def clear_logs(ctx: Context) -> dict[str, Any]:
    ctx.log_buffer.clear()
    return {"success": True}
