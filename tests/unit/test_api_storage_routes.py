"""Dashboard API: health, bindings, relational, key-value and object-store routes."""

from __future__ import annotations

from fastapi.testclient import TestClient

from flarescope.core.hasher import md5_hex


class TestMeta:
    def test_index(self, api_client: TestClient):
        body = api_client.get("/").json()
        assert "/api/health" in body["endpoints"]

    def test_health(self, api_client: TestClient):
        body = api_client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["name"] == "my-app"
        assert body["databases"] == 1
        assert body["kvNamespaces"] == 1
        assert body["r2Buckets"] == 1
        assert body["durableObjects"] == 2
        assert body["statePath"].endswith("v3")

    def test_bindings_mask_secrets(self, api_client: TestClient):
        body = api_client.get("/api/bindings").json()
        values = {v["key"]: v["value"] for v in body["bindings"]["vars"]}
        assert values == {"ENVIRONMENT": "development", "API_TOKEN": "********"}
        assert body["bindings"]["d1"] == [{"type": "D1", "binding": "DB", "database_name": "app-db"}]
        assert body["bindings"]["queues"]["consumers"] == [{"type": "QueueConsumer", "queue": "jobs"}]
        assert [s["name"] for s in body["services"]] == ["my-app"]


class TestRelationalRoutes:
    def test_list(self, api_client: TestClient):
        (db,) = api_client.get("/api/d1").json()["databases"]
        assert db["binding"] == "DB"

    def test_schema_and_table(self, api_client: TestClient):
        tables = api_client.get("/api/d1/DB/schema").json()["tables"]
        assert [t["name"] for t in tables] == ["users"]
        info = api_client.get("/api/d1/DB/tables/users").json()
        assert info["primaryKeys"] == ["id"]

    def test_rows_clamp_and_encode_blobs(self, api_client: TestClient):
        body = api_client.get("/api/d1/DB/tables/users/rows", params={"limit": "-1", "offset": "-99", "sort": "id"}).json()
        assert body["meta"] == {"limit": 100, "offset": 0}
        assert body["rows"][0]["avatar"] == "iVBORw=="

    def test_query(self, api_client: TestClient):
        response = api_client.post("/api/d1/DB/query", json={"sql": "SELECT name FROM users WHERE id = ?", "params": [1]})
        assert response.json() == {
            "success": True,
            "results": [{"name": "ada"}],
            "rowCount": 1,
            "meta": {"changes": 0},
        }

    def test_query_requires_sql(self, api_client: TestClient):
        response = api_client.post("/api/d1/DB/query", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "SQL query is required"

    def test_query_error_carries_engine_text(self, api_client: TestClient):
        response = api_client.post("/api/d1/DB/query", json={"sql": "SELECT * FROM ghosts"})
        assert response.status_code == 500
        assert "no such table: ghosts" in response.json()["error"]

    def test_row_edits(self, api_client: TestClient):
        inserted = api_client.post("/api/d1/DB/tables/users/rows", json={"name": "new"}).json()
        assert inserted["meta"]["last_row_id"] == 4

        updated = api_client.put("/api/d1/DB/tables/users/rows/4", json={"name": "renamed"}).json()
        assert updated["meta"]["changes"] == 1

        deleted = api_client.delete("/api/d1/DB/tables/users/rows/4").json()
        assert deleted["meta"]["changes"] == 1

    def test_unknown_database(self, api_client: TestClient):
        response = api_client.get("/api/d1/NOPE/schema")
        assert response.status_code == 404
        assert response.json() == {"error": "Database not found: NOPE", "success": False}


class TestKeyValueRoutes:
    def test_list_namespaces(self, api_client: TestClient):
        (ns,) = api_client.get("/api/kv").json()["namespaces"]
        assert ns["id"] == "kv-ns-1"

    def test_list_keys(self, api_client: TestClient):
        body = api_client.get("/api/kv/CACHE/keys", params={"prefix": "config:"}).json()
        assert [k["name"] for k in body["keys"]] == ["config:lang", "config:theme"]
        assert body["list_complete"] is True

    def test_get_json(self, api_client: TestClient):
        body = api_client.get("/api/kv/CACHE/keys/user:1", params={"type": "json"}).json()
        assert body["value"] == {"name": "Ada"}

    def test_put_get_delete(self, api_client: TestClient):
        put = api_client.put("/api/kv/CACHE/keys/nested/key", json={"value": "hello", "expirationTtl": 3600})
        assert put.json() == {"success": True}
        assert api_client.get("/api/kv/CACHE/keys/nested/key").json()["value"] == "hello"

        assert api_client.delete("/api/kv/CACHE/keys/nested/key").json() == {"success": True, "deleted": True}
        assert api_client.get("/api/kv/CACHE/keys/nested/key").status_code == 404

    def test_put_structured_value_as_json(self, api_client: TestClient):
        api_client.put("/api/kv/CACHE/keys/obj", json={"value": {"a": [1, 2]}})
        body = api_client.get("/api/kv/CACHE/keys/obj", params={"type": "json"}).json()
        assert body["value"] == {"a": [1, 2]}

    def test_put_requires_value(self, api_client: TestClient):
        response = api_client.put("/api/kv/CACHE/keys/k", json={})
        assert response.status_code == 400

    def test_bulk_delete(self, api_client: TestClient):
        response = api_client.post("/api/kv/CACHE/bulk-delete", json={"keys": ["config:lang", "ghost"]})
        assert response.json() == {"success": True, "deleted": 1}


class TestObjectStoreRoutes:
    def test_list(self, api_client: TestClient):
        (bucket,) = api_client.get("/api/r2").json()["buckets"]
        assert bucket["bucket_name"] == "assets"

    def test_list_with_delimiter(self, api_client: TestClient):
        body = api_client.get("/api/r2/ASSETS/objects", params={"delimiter": "/"}).json()
        assert body["delimitedPrefixes"] == ["docs/", "images/"]
        assert [o["key"] for o in body["objects"]] == ["top.txt"]

    def test_download(self, api_client: TestClient):
        response = api_client.get("/api/r2/ASSETS/objects/docs/readme.txt")
        assert response.status_code == 200
        assert response.content == b"hello"
        assert response.headers["content-type"] == "text/plain"
        assert response.headers["etag"] == '"' + md5_hex(b"hello") + '"'

    def test_meta(self, api_client: TestClient):
        body = api_client.get("/api/r2/ASSETS/objects/images/a.png/meta").json()
        assert body["key"] == "images/a.png"
        assert body["httpMetadata"] == {"contentType": "image/png"}

    def test_upload(self, api_client: TestClient):
        response = api_client.put(
            "/api/r2/ASSETS/objects/uploads/note.txt",
            content=b"note",
            headers={"content-type": "text/markdown", "x-amz-meta-author": "me"},
        )
        body = response.json()
        assert body["success"] is True
        assert body["etag"] == md5_hex(b"note")
        assert body["size"] == 4

        meta = api_client.get("/api/r2/ASSETS/objects/uploads/note.txt/meta").json()
        assert meta["customMetadata"] == {"author": "me"}
        assert api_client.get("/api/r2/ASSETS/objects/uploads/note.txt").headers["content-type"] == "text/markdown"

    def test_delete_and_bulk_delete(self, api_client: TestClient):
        assert api_client.delete("/api/r2/ASSETS/objects/top.txt").json() == {"success": True, "deleted": True}
        body = api_client.post("/api/r2/ASSETS/bulk-delete", json={"keys": ["images/a.png", "top.txt"]}).json()
        assert body == {"success": True, "deleted": 1}

    def test_missing_object(self, api_client: TestClient):
        assert api_client.get("/api/r2/ASSETS/objects/ghost").status_code == 404
