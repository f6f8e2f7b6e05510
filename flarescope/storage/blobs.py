"""Blob files referenced by id from key-value and object-store rows.

Layout: ``{directory}/{blob_id}``.  Blob ids are opaque; this class never
scans the directory or removes blobs on its own.  Callers remove a blob
only after the row that referenced it has been replaced or deleted.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flarescope.core.hasher import new_blob_id
from flarescope.models.state import BlobRef

logger = logging.getLogger(__name__)


class BlobDirectory:
    """Reads, writes and deletes blob files in one directory.

    Parameters
    ----------
    directory:
        Blob directory of a namespace or bucket.  Created lazily on the
        first write.
    """

    def __init__(self, directory: Path) -> None:
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, blob_id: str) -> Path:
        if not blob_id or "/" in blob_id or "\\" in blob_id or blob_id in (".", ".."):
            raise ValueError(f"Invalid blob id: {blob_id!r}")
        return self._dir / blob_id

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write(self, data: bytes) -> BlobRef:
        """Store *data* under a fresh id and return its reference."""
        blob_id = new_blob_id()
        self._dir.mkdir(parents=True, exist_ok=True)
        self._path(blob_id).write_bytes(data)
        return BlobRef(blob_id=blob_id, size_bytes=len(data), directory=self._dir)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read(self, blob_id: str) -> bytes | None:
        """Return the blob's bytes, or ``None`` if the file is missing."""
        path = self._path(blob_id)
        if not path.is_file():
            return None
        return path.read_bytes()

    def exists(self, blob_id: str) -> bool:
        return self._path(blob_id).is_file()

    def list_ids(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(p.name for p in self._dir.iterdir() if p.is_file())

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, blob_id: str | None) -> bool:
        """Remove a blob if present; returns whether a file was removed."""
        if not blob_id:
            return False
        path = self._path(blob_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Removed blob %s from %s", blob_id, self._dir)
        return True
