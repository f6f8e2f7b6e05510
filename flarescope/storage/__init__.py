"""Storage accessors for the four on-disk layouts the runtime produces."""

from flarescope.storage.actor_storage import ActorHandle, ActorStorageAccessor
from flarescope.storage.key_value import KeyValueAccessor, KeyValueHandle
from flarescope.storage.object_store import ObjectBody, ObjectStoreAccessor, ObjectStoreHandle
from flarescope.storage.relational import RelationalAccessor, RelationalHandle

__all__ = [
    "RelationalAccessor",
    "RelationalHandle",
    "KeyValueAccessor",
    "KeyValueHandle",
    "ObjectStoreAccessor",
    "ObjectStoreHandle",
    "ObjectBody",
    "ActorStorageAccessor",
    "ActorHandle",
]
