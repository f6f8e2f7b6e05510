"""JSON responses for payloads that may contain raw SQLite values.

SQLite BLOB columns and undecodable actor values arrive as ``bytes``;
they are sent as base64 strings.
"""

from __future__ import annotations

import base64
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


_ENCODERS = {bytes: _b64, bytearray: _b64, memoryview: lambda m: _b64(m.tobytes())}


def to_jsonable(payload: Any) -> Any:
    return jsonable_encoder(payload, custom_encoder=_ENCODERS)


def json_response(payload: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=to_jsonable(payload), status_code=status_code)
