"""The merged binding manifest shared by every co-located service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from flarescope.models.bindings import BindingDeclaration, BindingKind


class ServiceRef(BaseModel):
    """A discovered service and the descriptor it came from."""

    model_config = ConfigDict(frozen=True)

    name: str
    config_path: str


class QueueBindings(BaseModel):
    model_config = ConfigDict(frozen=True)

    producers: list[BindingDeclaration] = Field(default_factory=list)
    consumers: list[BindingDeclaration] = Field(default_factory=list)


class Manifest(BaseModel):
    """Deduplicated set of bindings across one or more related services.

    Binding names are unique per kind.  ``name`` is the root service name,
    used when resolving actor storage directories.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    relational: list[BindingDeclaration] = Field(default_factory=list)
    key_value: list[BindingDeclaration] = Field(default_factory=list)
    object_store: list[BindingDeclaration] = Field(default_factory=list)
    actors: list[BindingDeclaration] = Field(default_factory=list)
    queues: QueueBindings = Field(default_factory=QueueBindings)
    variables: list[BindingDeclaration] = Field(default_factory=list)
    services: list[ServiceRef] = Field(default_factory=list)

    def bindings_of(self, kind: BindingKind) -> list[BindingDeclaration]:
        """Return the merged declarations of *kind*."""
        if kind is BindingKind.QUEUE_PRODUCER:
            return list(self.queues.producers)
        if kind is BindingKind.QUEUE_CONSUMER:
            return list(self.queues.consumers)
        return list(getattr(self, _FIELD_BY_KIND[kind]))

    def find(self, kind: BindingKind, name: str) -> BindingDeclaration | None:
        for binding in self.bindings_of(kind):
            if binding.name == name:
                return binding
        return None

    def to_json(self) -> str:
        """Serialize to a single compact string for embedding in a descriptor."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, payload: str) -> Manifest:
        return cls.model_validate_json(payload)


_FIELD_BY_KIND: dict[BindingKind, str] = {
    BindingKind.RELATIONAL: "relational",
    BindingKind.KEY_VALUE: "key_value",
    BindingKind.OBJECT_STORE: "object_store",
    BindingKind.ACTOR: "actors",
    BindingKind.VARIABLE: "variables",
}
