"""Locate the runtime's state root and enumerate its database files."""

from __future__ import annotations

import logging
from pathlib import Path

from flarescope.models.bindings import BindingKind
from flarescope.models.state import PhysicalStateFile, StateInventory, StateLayout

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 5


def find_state_root(
    start_dir: Path,
    layout: StateLayout | None = None,
    *,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> Path | None:
    """Walk upward from *start_dir* looking for the state root.

    Checks *start_dir* and at most ``max_hops - 1`` parents; returns
    ``None`` when nothing is found or the filesystem root is reached.
    """
    layout = layout or StateLayout()
    current = Path(start_dir).resolve()
    for _ in range(max_hops):
        candidate = current / layout.state_subpath
        if candidate.is_dir():
            return candidate
        if current.parent == current:
            break
        current = current.parent
    return None


def _list_db_files(directory: Path, kind: BindingKind, suffix: str) -> list[PhysicalStateFile]:
    if not directory.is_dir():
        return []
    try:
        names = sorted(p for p in directory.iterdir() if p.is_file() and p.name.endswith(suffix))
    except OSError as exc:
        logger.warning("Cannot list %s: %s", directory, exc)
        return []
    return [PhysicalStateFile(kind=kind, path=p) for p in names]


def _list_actor_files(base: Path, suffix: str) -> list[PhysicalStateFile]:
    if not base.is_dir():
        return []
    files: list[PhysicalStateFile] = []
    for class_dir in sorted(base.iterdir()):
        if not class_dir.is_dir():
            continue
        try:
            instances = sorted(class_dir.iterdir())
        except OSError:
            logger.debug("Skipping unreadable actor directory %s", class_dir)
            continue
        for path in instances:
            if path.is_file() and path.name.endswith(suffix):
                files.append(
                    PhysicalStateFile(
                        kind=BindingKind.ACTOR,
                        path=path,
                        class_dir=class_dir.name,
                        instance_id=path.name[: -len(suffix)],
                    )
                )
    return files


def enumerate_state(state_root: Path, layout: StateLayout | None = None) -> StateInventory:
    """List every database file under *state_root*, unmatched."""
    layout = layout or StateLayout()
    root = Path(state_root)

    def db_files(kind: BindingKind) -> list[PhysicalStateFile]:
        return _list_db_files(root / layout.directory_for(kind), kind, layout.db_suffix)

    return StateInventory(
        state_root=root,
        relational=db_files(BindingKind.RELATIONAL),
        key_value=db_files(BindingKind.KEY_VALUE),
        object_store=db_files(BindingKind.OBJECT_STORE),
        actors=_list_actor_files(root / layout.directory_for(BindingKind.ACTOR), layout.db_suffix),
    )

