"""Dashboard API: actor, queue, log routes and error handling."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from flarescope.api.app import create_app
from flarescope.config import ScopeSettings
from flarescope.core.hasher import actor_id_from_name
from flarescope.core.state_scanner import StateScanner
from flarescope.models.manifest import Manifest

ALPHA = actor_id_from_name("Counter", "alpha")


class TestActorRoutes:
    def test_list_classes(self, api_client: TestClient):
        assert api_client.get("/api/do").json() == {
            "durableObjects": [{"binding": "COUNTER", "class_name": "Counter", "script_name": None}]
        }

    def test_instances_through_bridge(self, api_client: TestClient):
        body = api_client.get("/api/do/COUNTER/storage/instances").json()
        assert ALPHA in [i["id"] for i in body["instances"]]

    def test_schema_and_rows(self, api_client: TestClient):
        schema = api_client.get(f"/api/do/COUNTER/{ALPHA}/storage/schema").json()
        assert [t["name"] for t in schema["tables"]] == ["events"]
        rows = api_client.get(f"/api/do/COUNTER/{ALPHA}/storage/tables/events/rows", params={"limit": "2"}).json()
        assert len(rows["rows"]) == 2

    def test_table_info(self, api_client: TestClient):
        info = api_client.get(f"/api/do/COUNTER/{ALPHA}/storage/tables/events").json()
        assert info["rowCount"] == 3

    def test_kv(self, api_client: TestClient):
        body = api_client.get(f"/api/do/COUNTER/{ALPHA}/storage/kv", params={"prefix": "user:"}).json()
        assert body["meta"]["total"] == 2

    def test_query(self, api_client: TestClient):
        response = api_client.post(
            f"/api/do/COUNTER/{ALPHA}/storage/query",
            json={"sql": "DELETE FROM events WHERE kind = ?", "params": ["reset"]},
        )
        assert response.json()["meta"]["changes"] == 1

    def test_missing_instance_status_is_relayed(self, api_client: TestClient):
        response = api_client.get(f"/api/do/COUNTER/{'0' * 64}/storage/schema")
        assert response.status_code == 404
        assert response.json()["error"].startswith("Instance not found")


class TestActorIds:
    def test_from_name(self, api_client: TestClient):
        body = api_client.post("/api/do/COUNTER/id", json={"name": "alpha"}).json()
        assert body == {"id": ALPHA}

    def test_explicit_id_is_validated(self, api_client: TestClient):
        assert api_client.post("/api/do/COUNTER/id", json={"id": "F" * 64}).json() == {"id": "f" * 64}
        response = api_client.post("/api/do/COUNTER/id", json={"id": "short"})
        assert response.status_code == 400

    def test_fresh_id_without_body(self, api_client: TestClient):
        first = api_client.post("/api/do/COUNTER/id").json()["id"]
        assert len(first) == 64

    def test_unknown_binding(self, api_client: TestClient):
        assert api_client.post("/api/do/ROOM/id", json={}).status_code == 404
        assert api_client.post("/api/do/CACHE/id", json={}).status_code == 404


class TestActorUnavailable:
    @pytest.fixture
    def unbridged_client(self, test_settings: ScopeSettings, manifest: Manifest, scanner: StateScanner):
        app = create_app(test_settings, manifest=manifest, scanner=scanner)
        with TestClient(app) as client:
            yield client

    def test_storage_without_server_is_503(self, unbridged_client: TestClient):
        response = unbridged_client.get("/api/do/COUNTER/storage/instances")
        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert "storage-server" in body["hint"]

    def test_fetch_without_runtime_is_503(self, unbridged_client: TestClient):
        response = unbridged_client.get(f"/api/do/COUNTER/{ALPHA}/fetch/state")
        assert response.status_code == 503
        assert "FLARESCOPE_RUNTIME_URL" in response.json()["hint"]


class TestQueueRoutes:
    def test_list(self, api_client: TestClient):
        body = api_client.get("/api/queues").json()
        assert body["producers"] == [{"binding": "JOBS", "queue": "jobs"}]
        assert body["consumers"] == [
            {
                "queue": "jobs",
                "max_batch_size": 5,
                "max_batch_timeout": 5,
                "max_retries": 3,
                "dead_letter_queue": None,
            }
        ]

    def test_send_is_not_implemented(self, api_client: TestClient):
        response = api_client.post("/api/queues/JOBS/send", json={"body": "x"})
        assert response.status_code == 501
        assert response.json()["success"] is False
        assert api_client.post("/api/queues/JOBS/send-batch", json={"messages": []}).status_code == 501

    def test_send_to_unknown_queue(self, api_client: TestClient):
        assert api_client.post("/api/queues/NOPE/send", json={}).status_code == 404


class TestLogRoutes:
    def test_startup_entry(self, api_client: TestClient):
        logs = api_client.get("/api/logs").json()["logs"]
        assert logs[0]["message"] == "Flarescope API started"
        assert logs[0]["source"] == "system"

    def test_add_and_clear(self, api_client: TestClient):
        added = api_client.post("/api/logs", json={"message": "hi", "level": "warn", "source": "queue"}).json()
        assert added["success"] is True
        assert added["log"]["level"] == "warn"

        logs = api_client.get("/api/logs", params={"limit": 1}).json()["logs"]
        assert [entry["message"] for entry in logs] == ["hi"]

        assert api_client.delete("/api/logs").json() == {"success": True}
        assert api_client.get("/api/logs").json()["logs"] == []

    def test_invalid_body_is_400(self, api_client: TestClient):
        response = api_client.post("/api/logs", json={"level": "loud"})
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request")


class TestCreateApp:
    def test_requires_a_manifest(self, monkeypatch: pytest.MonkeyPatch, test_settings: ScopeSettings):
        monkeypatch.delenv("FLARESCOPE_MANIFEST", raising=False)
        with pytest.raises(ValueError):
            create_app(test_settings)

    def test_reads_embedded_manifest(
        self, monkeypatch: pytest.MonkeyPatch, test_settings: ScopeSettings, manifest: Manifest
    ):
        monkeypatch.setenv("FLARESCOPE_MANIFEST", manifest.to_json())
        app = create_app(test_settings)
        assert app.state.context.manifest == manifest
