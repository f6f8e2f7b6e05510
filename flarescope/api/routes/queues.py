"""Queue routes: producer and consumer listing from the manifest.

Sending needs the running service's queue binding, which this API does not
hold, so the send routes answer 501.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from flarescope.api.deps import Context
from flarescope.api.errors import error_response
from flarescope.models.bindings import BindingKind

router = APIRouter(prefix="/queues", tags=["queues"])

DEFAULT_MAX_BATCH_SIZE = 10
DEFAULT_MAX_BATCH_TIMEOUT = 5
DEFAULT_MAX_RETRIES = 3

_SEND_UNSUPPORTED = "Sending queue messages requires a running service with queue bindings."
_SEND_HINT = "Send messages from the service itself while it runs."


@router.get("")
def list_queues(ctx: Context) -> dict[str, Any]:
    queues = ctx.manifest.queues
    return {
        "producers": [{"binding": p.name, "queue": p.target("queue")} for p in queues.producers],
        "consumers": [
            {
                "queue": c.name,
                "max_batch_size": c.target("max_batch_size", DEFAULT_MAX_BATCH_SIZE),
                "max_batch_timeout": c.target("max_batch_timeout", DEFAULT_MAX_BATCH_TIMEOUT),
                "max_retries": c.target("max_retries", DEFAULT_MAX_RETRIES),
                "dead_letter_queue": c.target("dead_letter_queue"),
            }
            for c in queues.consumers
        ],
    }


@router.post("/{binding}/send")
def send(binding: str, ctx: Context) -> JSONResponse:
    ctx.registry.lookup(binding, BindingKind.QUEUE_PRODUCER)
    return error_response(501, _SEND_UNSUPPORTED, _SEND_HINT)


@router.post("/{binding}/send-batch")
def send_batch(binding: str, ctx: Context) -> JSONResponse:
    ctx.registry.lookup(binding, BindingKind.QUEUE_PRODUCER)
    return error_response(501, _SEND_UNSUPPORTED, _SEND_HINT)
