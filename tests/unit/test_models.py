"""Tests for the binding, manifest and state models."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from flarescope.models.bindings import BindingDeclaration, BindingKind, ServiceConfig
from flarescope.models.manifest import Manifest, QueueBindings, ServiceRef
from flarescope.models.state import BlobRef, PhysicalStateFile, StateInventory, StateLayout


def _actor(name: str, **targets) -> BindingDeclaration:
    return BindingDeclaration(kind=BindingKind.ACTOR, name=name, targets={"class_name": "Room", **targets})


class TestBindingDeclaration:
    def test_frozen(self):
        binding = _actor("ROOM")
        with pytest.raises(ValidationError):
            binding.name = "OTHER"

    def test_actor_helpers(self):
        local = _actor("ROOM")
        remote = _actor("ROOM", script_name="chat")
        assert local.class_name == "Room"
        assert local.is_remote is False
        assert remote.script_name == "chat"
        assert remote.is_remote is True

    def test_non_actor_is_never_remote(self):
        kv = BindingDeclaration(kind=BindingKind.KEY_VALUE, name="CACHE", targets={"script_name": "x"})
        assert kv.is_remote is False
        assert kv.class_name == ""

    def test_target_default(self):
        assert _actor("ROOM").target("missing", 7) == 7


class TestServiceConfig:
    def test_display_name_fallback(self):
        assert ServiceConfig().display_name == "user-worker"
        assert ServiceConfig(name="api").display_name == "api"

    def test_bindings_of_keeps_order(self):
        config = ServiceConfig(
            bindings=[
                _actor("B"),
                BindingDeclaration(kind=BindingKind.VARIABLE, name="X"),
                _actor("A"),
            ]
        )
        assert [b.name for b in config.bindings_of(BindingKind.ACTOR)] == ["B", "A"]


class TestManifest:
    @pytest.fixture
    def manifest(self) -> Manifest:
        return Manifest(
            name="app",
            actors=[_actor("ROOM")],
            queues=QueueBindings(
                producers=[BindingDeclaration(kind=BindingKind.QUEUE_PRODUCER, name="JOBS", targets={"queue": "jobs"})]
            ),
            services=[ServiceRef(name="app", config_path="/w/app/wrangler.toml")],
        )

    def test_bindings_of_and_find(self, manifest: Manifest):
        assert [b.name for b in manifest.bindings_of(BindingKind.QUEUE_PRODUCER)] == ["JOBS"]
        assert manifest.bindings_of(BindingKind.RELATIONAL) == []
        assert manifest.find(BindingKind.ACTOR, "ROOM") is not None
        assert manifest.find(BindingKind.ACTOR, "NOPE") is None

    def test_json_round_trip(self, manifest: Manifest):
        payload = manifest.to_json()
        assert "\n" not in payload
        assert Manifest.from_json(payload) == manifest


class TestStateModels:
    def test_layout_directories(self):
        layout = StateLayout()
        assert layout.directory_for(BindingKind.ACTOR) == "do"
        assert layout.directory_for(BindingKind.KEY_VALUE) == "kv/miniflare-KVNamespaceObject"

    def test_physical_file_names(self):
        file = PhysicalStateFile(kind=BindingKind.RELATIONAL, path=Path("/s/d1/abc.sqlite"))
        assert file.filename == "abc.sqlite"
        assert file.stem == "abc"
        assert file.matched_binding_name is None

    def test_inventory_files_of(self):
        file = PhysicalStateFile(kind=BindingKind.OBJECT_STORE, path=Path("/s/r2/x.sqlite"))
        inventory = StateInventory(object_store=[file])
        assert inventory.files_of(BindingKind.OBJECT_STORE) == [file]
        assert inventory.files_of(BindingKind.ACTOR) == []

    def test_blob_path(self):
        blob = BlobRef(blob_id="abc", size_bytes=3, directory=Path("/b"))
        assert blob.path == Path("/b/abc")
