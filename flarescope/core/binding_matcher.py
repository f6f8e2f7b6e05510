"""Best-effort association of physical state files with declared bindings.

The runtime names its database files by an opaque hash, so nothing on disk
says which binding a file belongs to.  Matching is therefore heuristic:

1. one file and one binding of a kind are matched unconditionally;
2. otherwise files and bindings are paired by position (file *i* with
   binding *i* in declaration order).  This is fragile when the counts
   differ and is kept only because no authoritative mapping exists;
3. actor storage is matched by class name through the
   ``<service>-<ClassName>`` directory name instead of by position.

Unmatched files keep ``matched_binding_name = None`` and stay reachable by
index.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from flarescope.models.bindings import BindingDeclaration, BindingKind
from flarescope.models.manifest import Manifest
from flarescope.models.state import PhysicalStateFile, StateInventory

# Target key naming the blob directory of a binding, per kind
_BLOB_NAMESPACE_KEY: dict[BindingKind, str] = {
    BindingKind.KEY_VALUE: "id",
    BindingKind.OBJECT_STORE: "bucket_name",
}


def _annotate(file: PhysicalStateFile, binding: BindingDeclaration) -> PhysicalStateFile:
    key = _BLOB_NAMESPACE_KEY.get(file.kind)
    namespace = binding.target(key) if key else None
    return file.model_copy(
        update={
            "matched_binding_name": binding.name,
            "blob_namespace": str(namespace) if namespace else None,
        }
    )


def match_positional(
    files: Sequence[PhysicalStateFile],
    bindings: Sequence[BindingDeclaration],
) -> list[PhysicalStateFile]:
    """Apply rules 1 and 2 to the files and bindings of one kind."""
    if len(files) == 1 and len(bindings) == 1:
        return [_annotate(files[0], bindings[0])]
    if not files or not bindings:
        return list(files)
    return [
        _annotate(file, bindings[i]) if i < len(bindings) else file
        for i, file in enumerate(files)
    ]


def resolve_actor_dir(
    dir_names: Iterable[str], service_name: str, class_name: str
) -> str | None:
    """Choose the storage directory of an actor class.

    Candidates are directories ending in ``-<class_name>``.  An exact
    ``<service_name>-<class_name>`` wins; otherwise a single candidate is
    used; otherwise the lexicographically smallest name is returned as a
    deterministic tiebreak.
    """
    suffix = f"-{class_name}"
    candidates = sorted({name for name in dir_names if name.endswith(suffix)})
    if not candidates:
        return None
    exact = f"{service_name}-{class_name}"
    if exact in candidates:
        return exact
    return candidates[0]


def match_actor_files(
    files: Sequence[PhysicalStateFile],
    bindings: Sequence[BindingDeclaration],
    service_name: str,
) -> list[PhysicalStateFile]:
    """Apply rule 3: annotate actor instance files by class directory."""
    dir_names = {f.class_dir for f in files if f.class_dir}
    owner_of_dir: dict[str, BindingDeclaration] = {}
    for binding in bindings:
        chosen = resolve_actor_dir(dir_names, service_name, binding.class_name)
        if chosen is not None:
            owner_of_dir.setdefault(chosen, binding)

    return [
        _annotate(f, owner_of_dir[f.class_dir])
        if f.class_dir in owner_of_dir
        else f
        for f in files
    ]


def match_inventory(inventory: StateInventory, manifest: Manifest | None) -> StateInventory:
    """Return a copy of *inventory* with every file's binding guessed."""
    if manifest is None:
        return inventory
    return inventory.model_copy(
        update={
            "relational": match_positional(inventory.relational, manifest.relational),
            "key_value": match_positional(inventory.key_value, manifest.key_value),
            "object_store": match_positional(inventory.object_store, manifest.object_store),
            "actors": match_actor_files(inventory.actors, manifest.actors, manifest.name),
        }
    )
