"""Typed binding registry, built once from the merged manifest.

Lookups go through an explicit name → ``RegisteredBinding`` map; an
unknown name, or a name registered under another kind, raises
``UnknownBindingError`` instead of silently yielding nothing.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from flarescope.errors import UnknownBindingError
from flarescope.models.bindings import BindingDeclaration, BindingKind
from flarescope.models.manifest import Manifest

_REGISTERED_KINDS: tuple[BindingKind, ...] = (
    BindingKind.RELATIONAL,
    BindingKind.KEY_VALUE,
    BindingKind.OBJECT_STORE,
    BindingKind.ACTOR,
    BindingKind.QUEUE_PRODUCER,
)


class RegisteredBinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: BindingKind
    declaration: BindingDeclaration

    @property
    def name(self) -> str:
        return self.declaration.name


class BindingRegistry:
    """Name-indexed view of every addressable binding in a manifest."""

    def __init__(self, entries: dict[str, RegisteredBinding] | None = None) -> None:
        self._entries: dict[str, RegisteredBinding] = dict(entries or {})

    @classmethod
    def from_manifest(cls, manifest: Manifest) -> BindingRegistry:
        entries: dict[str, RegisteredBinding] = {}
        for kind in _REGISTERED_KINDS:
            for declaration in manifest.bindings_of(kind):
                # binding names share one namespace at runtime; first kind wins
                entries.setdefault(
                    declaration.name,
                    RegisteredBinding(kind=kind, declaration=declaration),
                )
        return cls(entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, name: str, kind: BindingKind | None = None) -> RegisteredBinding:
        """Return the binding called *name*, optionally requiring *kind*.

        Raises
        ------
        UnknownBindingError
            If no binding is called *name*, or it has a different kind.
        """
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownBindingError(f"Unknown binding: {name}")
        if kind is not None and entry.kind is not kind:
            raise UnknownBindingError(
                f"Binding {name} is a {entry.kind.value} binding, not {kind.value}"
            )
        return entry

    def names(self, kind: BindingKind | None = None) -> list[str]:
        return [
            name for name, entry in self._entries.items() if kind is None or entry.kind is kind
        ]
