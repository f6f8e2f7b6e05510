"""Resolve a binding name (or index) to one matched state file."""

from __future__ import annotations

from collections.abc import Sequence

from flarescope.errors import NotFoundError
from flarescope.models.state import PhysicalStateFile
from flarescope.storage.blobs import BlobDirectory


def resolve_state_file(
    files: Sequence[PhysicalStateFile], binding: str, label: str
) -> PhysicalStateFile:
    """Pick the file for *binding*.

    Tries, in order: the file matched to *binding*, the first file whose
    name starts with *binding*, and *binding* read as an index into
    *files*.

    Raises
    ------
    NotFoundError
        If none of the three applies.
    """
    for file in files:
        if file.matched_binding_name == binding:
            return file
    for file in files:
        if binding and file.filename.startswith(binding):
            return file
    if binding.isdigit() and int(binding) < len(files):
        return files[int(binding)]
    raise NotFoundError(f"{label} not found: {binding}")


def blob_directory_for(file: PhysicalStateFile) -> BlobDirectory:
    """Blob directory of a key-value namespace or object-store bucket.

    With a known namespace the runtime keeps blobs in
    ``<kind-dir>/<namespace>/blobs``; otherwise they are looked for next
    to the database file, in ``blobs/<file-stem>``.
    """
    if file.blob_namespace:
        return BlobDirectory(file.path.parent.parent / file.blob_namespace / "blobs")
    return BlobDirectory(file.path.parent / "blobs" / file.stem)
