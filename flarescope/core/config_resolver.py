"""Transitive discovery of related service descriptors.

Starting from a root descriptor, every service it references (remote actor
classes, service bindings, workflow scripts) is located by searching the
root's directory tree for a descriptor whose ``name`` matches.  Discovery
runs to a fixed point: root first, then references in first-seen order.

A malformed descriptor anywhere in the tree is skipped; it never aborts
discovery of the others.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flarescope.core.config_loader import CONFIG_FILE_NAMES, parse_service_config
from flarescope.errors import ConfigParseError
from flarescope.models.bindings import DiscoveredConfig

logger = logging.getLogger(__name__)

EXCLUDED_DIRS: frozenset[str] = frozenset(
    {"node_modules", ".flarescope", ".wrangler", "dist", "build", ".git", "__pycache__"}
)


def find_config_by_name(directory: Path, name: str) -> DiscoveredConfig | None:
    """Depth-first search under *directory* for a descriptor named *name*.

    Descriptors in a directory are checked before its subdirectories.
    Build, dependency, and dot-directories are not entered.
    """
    directory = Path(directory).resolve()

    for filename in CONFIG_FILE_NAMES:
        candidate = directory / filename
        if not candidate.is_file():
            continue
        try:
            config = parse_service_config(candidate)
        except ConfigParseError as exc:
            logger.debug("Skipping unparsable config %s: %s", candidate, exc)
            continue
        if config.name == name:
            return DiscoveredConfig(path=candidate, config=config)

    try:
        entries = sorted(directory.iterdir())
    except OSError:
        return None

    for entry in entries:
        if entry.name in EXCLUDED_DIRS or entry.name.startswith("."):
            continue
        try:
            if not entry.is_dir():
                continue
        except OSError:
            continue
        found = find_config_by_name(entry, name)
        if found is not None:
            return found
    return None


def resolve_all_configs(root_config_path: Path) -> list[DiscoveredConfig]:
    """Return the root descriptor and every transitively referenced one.

    Raises
    ------
    ConfigParseError
        Only if the root descriptor itself cannot be parsed.
    """
    root_path = Path(root_config_path).resolve()
    root = DiscoveredConfig(path=root_path, config=parse_service_config(root_path))
    search_root = root_path.parent

    results: list[DiscoveredConfig] = [root]
    seen_paths: set[Path] = {root_path}
    seen_names: set[str] = {root.config.name} if root.config.name else set()

    def visit(names: list[str]) -> None:
        for name in names:
            # marked before its own references are explored; breaks cycles
            if name in seen_names:
                continue
            seen_names.add(name)

            found = find_config_by_name(search_root, name)
            if found is None:
                logger.warning("No service config named %r found under %s", name, search_root)
                continue
            if found.path in seen_paths:
                continue
            seen_paths.add(found.path)
            results.append(found)
            logger.debug("Discovered service %r at %s", name, found.path)
            visit(found.config.referenced_service_names)

    visit(root.config.referenced_service_names)
    return results
