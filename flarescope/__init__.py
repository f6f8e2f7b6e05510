"""Flarescope: inspect and edit the local state of a multi-binding service.

Discovery (config resolution, manifest merge, shadow descriptor), request
time state matching, and storage accessors for relational databases,
key-value namespaces, object-store buckets and per-instance actor storage.
"""

__version__ = "0.3.0"
__description__ = "Local state inspector for multi-binding serverless services"

__all__ = ["__version__"]
