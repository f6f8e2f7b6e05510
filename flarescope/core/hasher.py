"""Hashing and identifier helpers for stored values and actor instances.

Object-store etags are the MD5 hex digest of the uploaded bytes, which is
what the runtime itself records.  Actor ids are 64 hex characters; a
name-derived id is the SHA-256 of ``<class>:<name>`` so the same name
always resolves to the same instance.
"""

from __future__ import annotations

import hashlib
import re
import secrets
import uuid

from flarescope.errors import BadRequestError

_ACTOR_ID_RE = re.compile(r"^[0-9a-f]{64}$")


def md5_hex(data: bytes) -> str:
    """Return the MD5 hex digest of raw bytes (object-store etag)."""
    return hashlib.md5(data).hexdigest()


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def new_blob_id() -> str:
    return uuid.uuid4().hex


def actor_id_from_name(class_name: str, name: str) -> str:
    """Deterministic actor id for a named instance of *class_name*."""
    return sha256_hex(f"{class_name}:{name}".encode("utf-8"))


def validate_actor_id(actor_id: str) -> str:
    """Normalise and check an explicit actor id.

    Raises
    ------
    BadRequestError
        If *actor_id* is not 64 hexadecimal characters.
    """
    normalized = actor_id.strip().lower()
    if not _ACTOR_ID_RE.match(normalized):
        raise BadRequestError(f"Invalid actor id: {actor_id!r} (expected 64 hex characters)")
    return normalized


def new_actor_id() -> str:
    return secrets.token_hex(32)


def resolve_actor_id(class_name: str, *, actor_id: str | None = None, name: str | None = None) -> str:
    """Pick an actor id: explicit *actor_id*, else derived from *name*, else fresh."""
    if actor_id:
        return validate_actor_id(actor_id)
    if name:
        return actor_id_from_name(class_name, name)
    return new_actor_id()
