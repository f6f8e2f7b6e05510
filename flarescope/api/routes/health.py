"""Health endpoint: liveness plus a summary of the discovered state."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from flarescope import __version__
from flarescope.api.deps import Context

router = APIRouter(tags=["health"])


@router.get("/health")
def health(ctx: Context) -> dict[str, Any]:
    inventory = ctx.scanner.scan()
    return {
        "status": "ok",
        "name": ctx.manifest.name,
        "version": __version__,
        "statePath": str(inventory.state_root) if inventory.state_root else None,
        "databases": len(inventory.relational),
        "kvNamespaces": len(inventory.key_value),
        "r2Buckets": len(inventory.object_store),
        "durableObjects": len(inventory.actors),
    }
