"""Service descriptor loading: TOML, JSON, and JSONC into ``ServiceConfig``.

Descriptor files are searched in priority order (toml > json > jsonc).
Only the parts binding discovery needs are kept; target identifiers are
copied verbatim so they can be re-declared without loss.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import tomlkit

from flarescope.errors import ConfigParseError
from flarescope.models.bindings import BindingDeclaration, BindingKind, ServiceConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES: tuple[str, ...] = (
    "wrangler.toml",
    "wrangler.json",
    "wrangler.jsonc",
)

# (kind, path into the descriptor, key holding the binding name)
_BINDING_SECTIONS: tuple[tuple[BindingKind, tuple[str, ...], str], ...] = (
    (BindingKind.RELATIONAL, ("d1_databases",), "binding"),
    (BindingKind.KEY_VALUE, ("kv_namespaces",), "binding"),
    (BindingKind.OBJECT_STORE, ("r2_buckets",), "binding"),
    (BindingKind.ACTOR, ("durable_objects", "bindings"), "name"),
    (BindingKind.QUEUE_PRODUCER, ("queues", "producers"), "binding"),
    (BindingKind.QUEUE_CONSUMER, ("queues", "consumers"), "queue"),
)


def find_service_config(directory: Path) -> Path | None:
    """Return the first descriptor file in *directory*, or ``None``."""
    for filename in CONFIG_FILE_NAMES:
        candidate = Path(directory) / filename
        if candidate.is_file():
            return candidate
    return None


def strip_json_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments that are not inside strings."""
    out: list[str] = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if in_string:
            out.append(ch)
            if ch == "\\" and nxt:
                out.append(nxt)
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
        elif ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif ch == "/" and nxt == "/":
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif ch == "/" and nxt == "*":
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def load_raw_config(path: Path) -> dict[str, Any]:
    """Parse a descriptor file into a plain dict.

    Raises
    ------
    ConfigParseError
        If the file does not exist or its content is malformed.
    """
    path = Path(path).resolve()
    if not path.is_file():
        raise ConfigParseError(f"Service config not found at: {path}")

    try:
        text = path.read_text(encoding="utf-8")
        suffix = path.suffix.lower()
        if suffix == ".toml":
            data = tomlkit.loads(text).unwrap()
        elif suffix == ".json":
            data = json.loads(text)
        elif suffix == ".jsonc":
            data = json.loads(strip_json_comments(text))
        elif text.strip().startswith("{"):
            data = json.loads(strip_json_comments(text))
        else:
            data = tomlkit.loads(text).unwrap()
    except (OSError, ValueError) as exc:
        raise ConfigParseError(f"Could not parse {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigParseError(f"Service config {path} is not a table/object")
    return data


def _section(raw: dict[str, Any], path: tuple[str, ...]) -> list[Any]:
    node: Any = raw
    for key in path:
        if not isinstance(node, dict):
            return []
        node = node.get(key)
    return node if isinstance(node, list) else []


def extract_referenced_names(raw: dict[str, Any]) -> list[str]:
    """Names of other services this descriptor refers to, first-seen order.

    Sources: remote actor bindings (``script_name``), workflows
    (``script_name``), and service bindings (``service``).
    """
    names: list[str] = []
    candidates = [
        *(b.get("script_name") for b in _section(raw, ("durable_objects", "bindings")) if isinstance(b, dict)),
        *(w.get("script_name") for w in _section(raw, ("workflows",)) if isinstance(w, dict)),
        *(s.get("service") for s in _section(raw, ("services",)) if isinstance(s, dict)),
    ]
    for name in candidates:
        if name and name not in names:
            names.append(str(name))
    return names


def build_service_config(raw: dict[str, Any]) -> ServiceConfig:
    """Reduce a parsed descriptor to a ``ServiceConfig``."""
    bindings: list[BindingDeclaration] = []
    for kind, path, name_key in _BINDING_SECTIONS:
        for entry in _section(raw, path):
            if not isinstance(entry, dict) or not entry.get(name_key):
                logger.warning("Skipping %s entry without %r: %r", kind.value, name_key, entry)
                continue
            targets = {k: v for k, v in entry.items() if k != name_key}
            bindings.append(
                BindingDeclaration(kind=kind, name=str(entry[name_key]), targets=targets)
            )

    variables = raw.get("vars") or {}
    if isinstance(variables, dict):
        for key, value in variables.items():
            bindings.append(
                BindingDeclaration(
                    kind=BindingKind.VARIABLE,
                    name=str(key),
                    targets={"value": value},
                )
            )

    return ServiceConfig(
        name=str(raw.get("name") or ""),
        entry_point=str(raw.get("main") or ""),
        compatibility_date=str(raw.get("compatibility_date") or ""),
        bindings=bindings,
        referenced_service_names=extract_referenced_names(raw),
    )


def parse_service_config(path: Path) -> ServiceConfig:
    """Load and reduce one descriptor file."""
    return build_service_config(load_raw_config(path))
