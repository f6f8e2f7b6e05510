"""Summary of every binding in the merged manifest."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from flarescope.api.deps import Context
from flarescope.core.manifest_merger import looks_like_secret

router = APIRouter(prefix="/bindings", tags=["bindings"])

MAX_VAR_PREVIEW = 50
MASK = "********"


def _preview(key: str, value: Any) -> str:
    if looks_like_secret(key, value):
        return MASK
    text = str(value)
    return text[:MAX_VAR_PREVIEW] + "..." if len(text) > MAX_VAR_PREVIEW else text


@router.get("")
def list_bindings(ctx: Context) -> dict[str, Any]:
    manifest = ctx.manifest
    return {
        "name": manifest.name,
        "services": [s.model_dump() for s in manifest.services],
        "bindings": {
            "d1": [
                {
                    "type": "D1",
                    "binding": b.name,
                    "database_name": b.target("database_name"),
                }
                for b in manifest.relational
            ],
            "kv": [{"type": "KV", "binding": b.name, "id": b.target("id")} for b in manifest.key_value],
            "r2": [
                {"type": "R2", "binding": b.name, "bucket_name": b.target("bucket_name")}
                for b in manifest.object_store
            ],
            "durableObjects": [
                {
                    "type": "DurableObject",
                    "binding": b.name,
                    "class_name": b.class_name,
                    "script_name": b.script_name or None,
                }
                for b in manifest.actors
            ],
            "queues": {
                "producers": [
                    {"type": "Queue", "binding": b.name, "queue": b.target("queue")}
                    for b in manifest.queues.producers
                ],
                "consumers": [
                    {"type": "QueueConsumer", "queue": b.name} for b in manifest.queues.consumers
                ],
            },
            "vars": [
                {"type": "Var", "key": b.name, "value": _preview(b.name, b.target("value", ""))}
                for b in manifest.variables
            ],
        },
    }
