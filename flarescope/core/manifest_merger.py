"""Priority merge of discovered service configs into one ``Manifest``.

Configs are visited in discovery order and, per binding kind, the first
declaration of a name wins.  This is a priority merge, not a conflict
check: later duplicates are dropped silently.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from flarescope.models.bindings import BindingDeclaration, BindingKind, DiscoveredConfig
from flarescope.models.manifest import Manifest, QueueBindings, ServiceRef

_SECRET_KEY_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"secret",
        r"password",
        r"api[_-]?key",
        r"token",
        r"auth",
        r"private",
        r"credential",
    )
)
_TOKEN_VALUE = re.compile(r"^[A-Za-z0-9_-]+$")


def looks_like_secret(key: str, value: object) -> bool:
    """Heuristic: does a plain-text variable look like it holds a secret?"""
    if any(p.search(key) for p in _SECRET_KEY_PATTERNS):
        return True
    text = str(value)
    return len(text) > 20 and bool(_TOKEN_VALUE.match(text))


def _merge_kind(
    configs: Sequence[DiscoveredConfig], kind: BindingKind
) -> list[BindingDeclaration]:
    merged: dict[str, BindingDeclaration] = {}
    for discovered in configs:
        for binding in discovered.config.bindings_of(kind):
            merged.setdefault(binding.name, binding)
    return list(merged.values())


def merge_manifest(configs: Sequence[DiscoveredConfig]) -> Manifest:
    """Merge *configs* (discovery order) into a deduplicated manifest.

    Raises
    ------
    ValueError
        If *configs* is empty.
    """
    if not configs:
        raise ValueError("At least one config is required")

    return Manifest(
        name=configs[0].config.display_name,
        relational=_merge_kind(configs, BindingKind.RELATIONAL),
        key_value=_merge_kind(configs, BindingKind.KEY_VALUE),
        object_store=_merge_kind(configs, BindingKind.OBJECT_STORE),
        actors=_merge_kind(configs, BindingKind.ACTOR),
        queues=QueueBindings(
            producers=_merge_kind(configs, BindingKind.QUEUE_PRODUCER),
            consumers=_merge_kind(configs, BindingKind.QUEUE_CONSUMER),
        ),
        variables=_merge_kind(configs, BindingKind.VARIABLE),
        services=[
            ServiceRef(name=c.config.display_name, config_path=c.path.as_posix())
            for c in configs
        ],
    )


def build_actor_owner_map(configs: Sequence[DiscoveredConfig]) -> dict[str, str]:
    """Map each actor class to the service that defines it locally.

    A binding defines its class locally when it names no remote
    ``script_name``.  The first such config in discovery order wins.
    """
    owners: dict[str, str] = {}
    for discovered in configs:
        for binding in discovered.config.bindings_of(BindingKind.ACTOR):
            if not binding.is_remote and binding.class_name:
                owners.setdefault(binding.class_name, discovered.config.display_name)
    return owners


KIND_LABELS: dict[BindingKind, str] = {
    BindingKind.RELATIONAL: "D1",
    BindingKind.KEY_VALUE: "KV",
    BindingKind.OBJECT_STORE: "R2",
    BindingKind.ACTOR: "DO",
    BindingKind.QUEUE_PRODUCER: "Queue",
    BindingKind.QUEUE_CONSUMER: "Queue consumer",
    BindingKind.VARIABLE: "Var",
}


def binding_summary(manifest: Manifest) -> list[str]:
    """One display line per binding, e.g. ``"DB (D1)"``."""
    lines: list[str] = []
    for kind, label in KIND_LABELS.items():
        for binding in manifest.bindings_of(kind):
            lines.append(f"{binding.name} ({label})")
    return lines
