"""Key-value namespace access.

Each namespace is a database with one metadata table::

    _mf_entries(key PRIMARY KEY, blob_id, expiration, metadata)

The value itself lives in a blob file named by ``blob_id``.  ``expiration``
is epoch seconds; an expired row is treated as absent even though the
runtime may not have removed it yet.

Write order: new blob, then the row upsert, then removal of the old blob.
Delete order: the row, then its blob.  A crash can leave an orphaned blob
but never a row pointing at a missing one.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from flarescope.core.state_scanner import StateScanner
from flarescope.errors import BadRequestError, FlarescopeError, NotFoundError
from flarescope.models.state import BlobRef, PhysicalStateFile
from flarescope.storage._files import blob_directory_for, resolve_state_file
from flarescope.storage._sqlite import (
    DEFAULT_BUSY_TIMEOUT_MS,
    clamp_page,
    open_database,
    starts_with,
)
from flarescope.storage.blobs import BlobDirectory

logger = logging.getLogger(__name__)

DEFAULT_KEY_LIMIT = 100
VALUE_TYPES = ("text", "json", "arrayBuffer")

# expiration NULL or 0 means "never expires"
_LIVE = "(expiration IS NULL OR expiration = 0 OR expiration >= ?)"


def _load_metadata(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


class KeyValueHandle:
    """Operations on one key-value namespace."""

    def __init__(
        self,
        file: PhysicalStateFile,
        blobs: BlobDirectory,
        *,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._file = file
        self._blobs = blobs
        self._busy_timeout_ms = busy_timeout_ms
        self._clock = clock

    @property
    def blobs(self) -> BlobDirectory:
        return self._blobs

    def _connect(self):
        return open_database(self._file.path, busy_timeout_ms=self._busy_timeout_ms)

    def _now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_keys(
        self, prefix: str | None = None, limit: Any = None, cursor: str | None = None
    ) -> dict[str, Any]:
        """List live keys in key order, after *cursor* when given."""
        page_limit, _ = clamp_page(limit, 0, DEFAULT_KEY_LIMIT)
        clauses = [_LIVE]
        params: list[Any] = [self._now()]
        if prefix:
            clauses.append(starts_with("key"))
            params.extend((prefix, prefix))
        if cursor:
            clauses.append("key > ?")
            params.append(cursor)
        params.append(page_limit + 1)
        sql = (
            "SELECT key, expiration, metadata FROM _mf_entries "
            f"WHERE {' AND '.join(clauses)} ORDER BY key LIMIT ?"
        )
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()

        has_more = len(rows) > page_limit
        keys = [
            {
                "name": row["key"],
                "expiration": row["expiration"],
                "metadata": _load_metadata(row["metadata"]),
            }
            for row in rows[:page_limit]
        ]
        return {
            "keys": keys,
            "cursor": keys[-1]["name"] if has_more and keys else None,
            "list_complete": not has_more,
        }

    def get(self, key: str, value_type: str = "text") -> dict[str, Any]:
        """Read one value as ``text``, ``json``, or base64 ``arrayBuffer``.

        Raises
        ------
        NotFoundError
            If the key is absent, expired, or its blob is missing.
        BadRequestError
            For an unknown *value_type*, or a ``json`` read of non-JSON data.
        """
        if value_type not in VALUE_TYPES:
            raise BadRequestError(f"Unknown value type: {value_type}")
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT key, blob_id, expiration, metadata FROM _mf_entries WHERE key = ? AND {_LIVE}",
                (key, self._now()),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Key not found: {key}")

        data = self._blobs.read(row["blob_id"])
        if data is None:
            raise NotFoundError(f"Blob not found for key: {key}")

        value: Any
        if value_type == "json":
            try:
                value = json.loads(data.decode("utf-8"))
            except ValueError as exc:
                raise BadRequestError(f"Value of {key} is not valid JSON") from exc
        elif value_type == "arrayBuffer":
            value = base64.b64encode(data).decode("ascii")
        else:
            value = data.decode("utf-8", errors="replace")
        return {
            "key": key,
            "value": value,
            "metadata": _load_metadata(row["metadata"]),
            "expiration": row["expiration"],
        }

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def put(
        self,
        key: str,
        value: str | bytes,
        *,
        metadata: Any = None,
        expiration_ttl: int | None = None,
        expiration: int | None = None,
    ) -> BlobRef:
        """Store *value* under *key*, replacing any previous value."""
        if not key:
            raise BadRequestError("Key is required")
        data = value.encode("utf-8") if isinstance(value, str) else bytes(value)

        expires_at: int | None = None
        if expiration:
            expires_at = int(expiration)
        elif expiration_ttl:
            expires_at = self._now() + int(expiration_ttl)

        blob = self._blobs.write(data)
        try:
            with self._connect() as conn:
                previous = conn.execute(
                    "SELECT blob_id FROM _mf_entries WHERE key = ?", (key,)
                ).fetchone()
                conn.execute(
                    "INSERT OR REPLACE INTO _mf_entries (key, blob_id, expiration, metadata) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        key,
                        blob.blob_id,
                        expires_at,
                        json.dumps(metadata) if metadata is not None else None,
                    ),
                )
        except FlarescopeError:
            self._blobs.delete(blob.blob_id)
            raise

        if previous is not None and previous["blob_id"] != blob.blob_id:
            self._blobs.delete(previous["blob_id"])
        logger.debug("Stored key %s (%d bytes)", key, blob.size_bytes)
        return blob

    def delete(self, key: str) -> bool:
        """Delete *key*; returns whether a row existed."""
        with self._connect() as conn:
            return self._delete_one(conn, key)

    def bulk_delete(self, keys: Iterable[str]) -> int:
        """Delete every key in *keys*; returns how many rows existed."""
        deleted = 0
        with self._connect() as conn:
            for key in keys:
                if self._delete_one(conn, key):
                    deleted += 1
        return deleted

    def _delete_one(self, conn, key: str) -> bool:
        row = conn.execute("SELECT blob_id FROM _mf_entries WHERE key = ?", (key,)).fetchone()
        if row is None:
            return False
        conn.execute("DELETE FROM _mf_entries WHERE key = ?", (key,))
        self._blobs.delete(row["blob_id"])
        return True


class KeyValueAccessor:
    """Lists key-value namespaces and opens them by binding name."""

    def __init__(
        self,
        scanner: StateScanner,
        *,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._scanner = scanner
        self._busy_timeout_ms = busy_timeout_ms
        self._clock = clock

    def list_namespaces(self) -> list[dict[str, Any]]:
        files = self._scanner.scan().key_value
        return [
            {
                "binding": f.matched_binding_name or f"namespace_{i}",
                "id": f.blob_namespace or f.stem,
                "file": f.filename,
            }
            for i, f in enumerate(files)
        ]

    def open(self, binding: str) -> KeyValueHandle:
        """Resolve *binding* to a namespace.

        Raises
        ------
        NotFoundError
            If no file can be resolved for *binding*.
        """
        file = resolve_state_file(self._scanner.scan().key_value, binding, "Namespace")
        return KeyValueHandle(
            file,
            blob_directory_for(file),
            busy_timeout_ms=self._busy_timeout_ms,
            clock=self._clock,
        )
