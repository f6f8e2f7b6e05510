"""Flarescope data models: all Pydantic v2, all frozen (immutable)."""

from flarescope.models.bindings import (
    BindingDeclaration,
    BindingKind,
    DiscoveredConfig,
    ServiceConfig,
)
from flarescope.models.manifest import Manifest, QueueBindings, ServiceRef
from flarescope.models.state import (
    ActorInstanceStore,
    BlobRef,
    PhysicalStateFile,
    StateInventory,
    StateLayout,
)

__all__ = [
    # bindings
    "BindingKind",
    "BindingDeclaration",
    "ServiceConfig",
    "DiscoveredConfig",
    # manifest
    "Manifest",
    "QueueBindings",
    "ServiceRef",
    # state
    "StateLayout",
    "PhysicalStateFile",
    "StateInventory",
    "BlobRef",
    "ActorInstanceStore",
]
