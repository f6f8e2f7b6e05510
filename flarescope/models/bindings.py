"""Binding declarations and parsed service configurations.

A binding is a named handle a service uses to reach one storage or
messaging resource.  Declarations keep their target identifiers exactly as
written in the service descriptor so they can be re-declared verbatim.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BindingKind(str, Enum):
    """The binding types a service descriptor can declare."""

    RELATIONAL = "relational"
    KEY_VALUE = "key_value"
    OBJECT_STORE = "object_store"
    ACTOR = "actor"
    QUEUE_PRODUCER = "queue_producer"
    QUEUE_CONSUMER = "queue_consumer"
    VARIABLE = "variable"


class BindingDeclaration(BaseModel):
    """One binding as declared in a service descriptor.

    ``name`` is the binding name (the variable name for ``VARIABLE``, the
    queue name for ``QUEUE_CONSUMER``).  ``targets`` holds every other key
    of the declaration, e.g. ``database_id`` or ``class_name``.
    """

    model_config = ConfigDict(frozen=True)

    kind: BindingKind
    name: str
    targets: dict[str, Any] = Field(default_factory=dict)

    def target(self, key: str, default: Any = None) -> Any:
        return self.targets.get(key, default)

    @property
    def class_name(self) -> str:
        """Actor class name (empty for non-actor bindings)."""
        return str(self.targets.get("class_name", ""))

    @property
    def script_name(self) -> str:
        """Remote service named by an actor binding, or ``""``."""
        return str(self.targets.get("script_name") or "")

    @property
    def is_remote(self) -> bool:
        """True for an actor binding whose class lives in another service."""
        return self.kind is BindingKind.ACTOR and bool(self.script_name)


class ServiceConfig(BaseModel):
    """A parsed service descriptor, reduced to what discovery needs."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    entry_point: str = ""
    compatibility_date: str = ""
    bindings: list[BindingDeclaration] = Field(default_factory=list)
    referenced_service_names: list[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or "user-worker"

    def bindings_of(self, kind: BindingKind) -> list[BindingDeclaration]:
        """Return the declarations of *kind* in declaration order."""
        return [b for b in self.bindings if b.kind is kind]


class DiscoveredConfig(BaseModel):
    """A service descriptor together with the file it was read from."""

    model_config = ConfigDict(frozen=True)

    path: Path
    config: ServiceConfig
