"""Forwarding between a sandboxed caller and host-side listeners.

Modules
-------
actor_bridge
    ``ActorStorageBridge`` forwards actor-storage requests to the host
    storage server; ``RuntimeFetchProxy`` forwards live-instance requests
    to the running service.  Both fail with ``StorageUnavailableError``
    when their target is unset or unreachable.
"""
