"""Object-store bucket access.

Each bucket is a database with one metadata table::

    _mf_objects(key PRIMARY KEY, blob_id, version, size, etag, uploaded,
                checksums, http_metadata, custom_metadata)

``etag`` is the MD5 hex digest of the object bytes and ``uploaded`` is in
epoch milliseconds.  ``checksums``, ``http_metadata`` and
``custom_metadata`` are JSON objects.  Blob handling follows the same
write-then-swap-then-delete order as key-value namespaces.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict

from flarescope.core.hasher import md5_hex, new_blob_id
from flarescope.core.state_scanner import StateScanner
from flarescope.errors import BadRequestError, FlarescopeError, NotFoundError
from flarescope.models.state import PhysicalStateFile
from flarescope.storage._files import blob_directory_for, resolve_state_file
from flarescope.storage._sqlite import (
    DEFAULT_BUSY_TIMEOUT_MS,
    clamp_page,
    open_database,
    starts_with,
)
from flarescope.storage.blobs import BlobDirectory

logger = logging.getLogger(__name__)

DEFAULT_OBJECT_LIMIT = 100
CUSTOM_METADATA_PREFIX = "x-amz-meta-"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_OBJECT_COLUMNS = "key, blob_id, version, size, etag, uploaded, checksums, http_metadata, custom_metadata"


class ObjectBody(BaseModel):
    """Bytes of one object plus the response headers to serve it with."""

    model_config = ConfigDict(frozen=True)

    key: str
    data: bytes
    headers: dict[str, str]


def _json_object(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


def _iso_from_millis(millis: Any) -> str | None:
    if millis is None:
        return None
    return datetime.fromtimestamp(float(millis) / 1000.0, tz=timezone.utc).isoformat()


def custom_metadata_from_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Collect ``x-amz-meta-*`` headers into a metadata dict."""
    return {
        name[len(CUSTOM_METADATA_PREFIX) :]: value
        for name, value in headers.items()
        if name.lower().startswith(CUSTOM_METADATA_PREFIX) and len(name) > len(CUSTOM_METADATA_PREFIX)
    }


def _describe(row, *, include_http_metadata: bool = False) -> dict[str, Any]:
    info: dict[str, Any] = {
        "key": row["key"],
        "size": row["size"],
        "etag": row["etag"],
        "httpEtag": f'"{row["etag"]}"',
        "uploaded": _iso_from_millis(row["uploaded"]),
        "checksums": _json_object(row["checksums"]),
        "customMetadata": _json_object(row["custom_metadata"]),
    }
    if include_http_metadata:
        info["httpMetadata"] = _json_object(row["http_metadata"])
    return info


class ObjectStoreHandle:
    """Operations on one object-store bucket."""

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

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_objects(
        self,
        prefix: str | None = None,
        limit: Any = None,
        cursor: str | None = None,
        delimiter: str | None = None,
    ) -> dict[str, Any]:
        """List objects in key order.

        With a *delimiter*, every key whose remainder after *prefix*
        contains the delimiter is folded into a common prefix ending at
        the first delimiter.  Each object and each common prefix counts
        once toward *limit*.
        """
        page_limit, _ = clamp_page(limit, 0, DEFAULT_OBJECT_LIMIT)
        prefix = prefix or ""
        clauses: list[str] = []
        params: list[Any] = []
        if prefix:
            clauses.append(starts_with("key"))
            params.extend((prefix, prefix))
        if cursor:
            clauses.append("key > ?")
            params.append(cursor)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"SELECT {_OBJECT_COLUMNS} FROM _mf_objects {where} ORDER BY key"

        objects: list[dict[str, Any]] = []
        prefixes: list[str] = []
        last_key: str | None = None
        truncated = False
        with self._connect() as conn:
            for row in conn.execute(sql, params):
                key = row["key"]
                common = None
                if delimiter:
                    rest = key[len(prefix) :]
                    index = rest.find(delimiter)
                    if index != -1:
                        common = prefix + rest[: index + len(delimiter)]
                if common is not None and prefixes and prefixes[-1] == common:
                    last_key = key
                    continue
                if len(objects) + len(prefixes) >= page_limit:
                    truncated = True
                    break
                if common is not None:
                    prefixes.append(common)
                else:
                    objects.append(_describe(row))
                last_key = key

        return {
            "objects": objects,
            "delimitedPrefixes": prefixes,
            "truncated": truncated,
            "cursor": last_key if truncated else None,
        }

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _row(self, key: str):
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_OBJECT_COLUMNS} FROM _mf_objects WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Object not found: {key}")
        return row

    def head(self, key: str) -> dict[str, Any]:
        return _describe(self._row(key), include_http_metadata=True)

    def get(self, key: str) -> ObjectBody:
        """Return the object's bytes with Content-Type, ETag and length headers.

        Raises
        ------
        NotFoundError
            If the object or its blob does not exist.
        """
        row = self._row(key)
        data = self._blobs.read(row["blob_id"]) if row["blob_id"] else None
        if data is None:
            raise NotFoundError(f"Blob not found for object: {key}")
        http_metadata = _json_object(row["http_metadata"])
        headers = {
            "Content-Type": http_metadata.get("contentType") or DEFAULT_CONTENT_TYPE,
            "ETag": f'"{row["etag"]}"',
            "Content-Length": str(len(data)),
        }
        if http_metadata.get("contentDisposition"):
            headers["Content-Disposition"] = http_metadata["contentDisposition"]
        return ObjectBody(key=key, data=data, headers=headers)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Upload *data* under *key*; returns key, size, etag and version."""
        if not key:
            raise BadRequestError("Object key is required")
        headers = headers or {}
        etag = md5_hex(data)
        http_metadata: dict[str, str] = {"contentType": content_type or DEFAULT_CONTENT_TYPE}
        disposition = next(
            (v for k, v in headers.items() if k.lower() == "content-disposition"), None
        )
        if disposition:
            http_metadata["contentDisposition"] = disposition
        version = new_blob_id()

        blob = self._blobs.write(data)
        try:
            with self._connect() as conn:
                previous = conn.execute(
                    "SELECT blob_id FROM _mf_objects WHERE key = ?", (key,)
                ).fetchone()
                conn.execute(
                    f"INSERT OR REPLACE INTO _mf_objects ({_OBJECT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        key,
                        blob.blob_id,
                        version,
                        len(data),
                        etag,
                        int(self._clock() * 1000),
                        json.dumps({"md5": etag}),
                        json.dumps(http_metadata),
                        json.dumps(custom_metadata_from_headers(headers)),
                    ),
                )
        except FlarescopeError:
            self._blobs.delete(blob.blob_id)
            raise

        if previous is not None and previous["blob_id"] and previous["blob_id"] != blob.blob_id:
            self._blobs.delete(previous["blob_id"])
        logger.debug("Stored object %s (%d bytes, etag %s)", key, len(data), etag)
        return {"key": key, "size": len(data), "etag": etag, "version": version}

    def delete(self, key: str) -> bool:
        with self._connect() as conn:
            return self._delete_one(conn, key)

    def bulk_delete(self, keys: Iterable[str]) -> int:
        deleted = 0
        with self._connect() as conn:
            for key in keys:
                if self._delete_one(conn, key):
                    deleted += 1
        return deleted

    def _delete_one(self, conn, key: str) -> bool:
        row = conn.execute("SELECT blob_id FROM _mf_objects WHERE key = ?", (key,)).fetchone()
        if row is None:
            return False
        conn.execute("DELETE FROM _mf_objects WHERE key = ?", (key,))
        self._blobs.delete(row["blob_id"])
        return True


class ObjectStoreAccessor:
    """Lists buckets and opens them by binding name."""

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

    def list_buckets(self) -> list[dict[str, Any]]:
        files = self._scanner.scan().object_store
        return [
            {
                "binding": f.matched_binding_name or f"bucket_{i}",
                "bucket_name": f.blob_namespace or f.stem,
                "file": f.filename,
            }
            for i, f in enumerate(files)
        ]

    def open(self, binding: str) -> ObjectStoreHandle:
        """Resolve *binding* to a bucket.

        Raises
        ------
        NotFoundError
            If no file can be resolved for *binding*.
        """
        file = resolve_state_file(self._scanner.scan().object_store, binding, "Bucket")
        return ObjectStoreHandle(
            file,
            blob_directory_for(file),
            busy_timeout_ms=self._busy_timeout_ms,
            clock=self._clock,
        )
