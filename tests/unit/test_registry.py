"""Tests for the typed binding registry."""

from __future__ import annotations

import pytest

from flarescope.core.registry import BindingRegistry
from flarescope.errors import NotFoundError, UnknownBindingError
from flarescope.models.bindings import BindingKind
from flarescope.models.manifest import Manifest


class TestBindingRegistry:
    def test_lookup_by_name(self, manifest: Manifest):
        registry = BindingRegistry.from_manifest(manifest)
        entry = registry.lookup("CACHE")
        assert entry.kind is BindingKind.KEY_VALUE
        assert entry.declaration.target("id") == "kv-ns-1"

    def test_lookup_with_matching_kind(self, manifest: Manifest):
        registry = BindingRegistry.from_manifest(manifest)
        assert registry.lookup("COUNTER", BindingKind.ACTOR).name == "COUNTER"

    def test_unknown_name_raises(self, manifest: Manifest):
        registry = BindingRegistry.from_manifest(manifest)
        with pytest.raises(UnknownBindingError, match="NOPE"):
            registry.lookup("NOPE")

    def test_wrong_kind_raises(self, manifest: Manifest):
        registry = BindingRegistry.from_manifest(manifest)
        with pytest.raises(UnknownBindingError):
            registry.lookup("CACHE", BindingKind.ACTOR)

    def test_unknown_binding_is_a_not_found(self):
        assert issubclass(UnknownBindingError, NotFoundError)
        assert UnknownBindingError.status_code == 404

    def test_variables_and_consumers_are_not_registered(self, manifest: Manifest):
        registry = BindingRegistry.from_manifest(manifest)
        assert "ENVIRONMENT" not in registry
        assert "jobs" not in registry
        assert len(registry) == 5

    def test_names_filtered_by_kind(self, manifest: Manifest):
        registry = BindingRegistry.from_manifest(manifest)
        assert registry.names(BindingKind.QUEUE_PRODUCER) == ["JOBS"]
        assert set(registry.names()) == {"DB", "CACHE", "ASSETS", "COUNTER", "JOBS"}
