"""Models for the runtime's persisted state on disk.

The runtime writes one SQLite file per database, namespace, bucket, and
actor instance.  These models describe what was found on disk and what it
was matched to; they are rebuilt on every inspection.

Layout (defaults)::

    <project>/.wrangler/state/v3/
        d1/miniflare-D1DatabaseObject/<hash>.sqlite
        kv/miniflare-KVNamespaceObject/<hash>.sqlite
        kv/<namespace-id>/blobs/<blob-id>
        r2/miniflare-R2BucketObject/<hash>.sqlite
        r2/<bucket-name>/blobs/<blob-id>
        do/<service>-<ClassName>/<instance-id>.sqlite
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from flarescope.models.bindings import BindingKind


class StateLayout(BaseModel):
    """Directory conventions of the runtime's state root."""

    model_config = ConfigDict(frozen=True)

    state_subpath: str = ".wrangler/state/v3"
    relational_dir: str = "d1/miniflare-D1DatabaseObject"
    key_value_dir: str = "kv/miniflare-KVNamespaceObject"
    object_store_dir: str = "r2/miniflare-R2BucketObject"
    actor_dir: str = "do"
    db_suffix: str = ".sqlite"

    def directory_for(self, kind: BindingKind) -> str:
        return {
            BindingKind.RELATIONAL: self.relational_dir,
            BindingKind.KEY_VALUE: self.key_value_dir,
            BindingKind.OBJECT_STORE: self.object_store_dir,
            BindingKind.ACTOR: self.actor_dir,
        }[kind]


class PhysicalStateFile(BaseModel):
    """One database file the runtime created.

    ``matched_binding_name`` and ``blob_namespace`` are filled in by the
    binding matcher.  ``class_dir`` and ``instance_id`` are set for actor
    storage files only.
    """

    model_config = ConfigDict(frozen=True)

    kind: BindingKind
    path: Path
    matched_binding_name: str | None = None
    blob_namespace: str | None = None
    class_dir: str | None = None
    instance_id: str | None = None

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def stem(self) -> str:
        return self.path.stem


class StateInventory(BaseModel):
    """Every physical state file found under one state root."""

    model_config = ConfigDict(frozen=True)

    state_root: Path | None = None
    relational: list[PhysicalStateFile] = []
    key_value: list[PhysicalStateFile] = []
    object_store: list[PhysicalStateFile] = []
    actors: list[PhysicalStateFile] = []

    def files_of(self, kind: BindingKind) -> list[PhysicalStateFile]:
        return {
            BindingKind.RELATIONAL: self.relational,
            BindingKind.KEY_VALUE: self.key_value,
            BindingKind.OBJECT_STORE: self.object_store,
            BindingKind.ACTOR: self.actors,
        }[kind]


class BlobRef(BaseModel):
    """A value stored as a standalone file, referenced by a metadata row."""

    model_config = ConfigDict(frozen=True)

    blob_id: str
    size_bytes: int
    directory: Path

    @property
    def path(self) -> Path:
        return self.directory / self.blob_id


class ActorInstanceStore(BaseModel):
    """The storage file of one actor instance."""

    model_config = ConfigDict(frozen=True)

    binding: str
    class_name: str
    instance_id: str
    path: Path
