"""Tests for the actor storage bridge and the runtime fetch proxy."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from flarescope.bridge.actor_bridge import (
    ACTOR_BINDING_HEADER,
    ACTOR_ID_HEADER,
    ActorStorageBridge,
    RuntimeFetchProxy,
    escape_segment,
    strip_hop_headers,
)
from flarescope.core.hasher import actor_id_from_name
from flarescope.errors import StorageUnavailableError

ALPHA = actor_id_from_name("Counter", "alpha")


class TestHelpers:
    def test_escape_segment(self):
        assert escape_segment("a/b c") == "a%2Fb%20c"
        assert escape_segment("Counter_1.x~") == "Counter_1.x~"

    def test_strip_hop_headers(self):
        headers = {"Connection": "keep-alive", "Content-Length": "3", "X-Trace": "1", "Host": "h"}
        assert strip_hop_headers(headers) == {"X-Trace": "1"}
        assert strip_hop_headers(None) == {}


class TestUnavailable:
    def test_unset_address(self):
        bridge = ActorStorageBridge(None)
        assert bridge.configured is False
        with pytest.raises(StorageUnavailableError) as info:
            bridge.instances("COUNTER")
        assert info.value.status_code == 503
        assert "FLARESCOPE_ACTOR_STORAGE_URL" in info.value.hint

    def test_unreachable_address(self):
        with ActorStorageBridge("http://127.0.0.1:1", connect_timeout_seconds=0.5) as bridge:
            with pytest.raises(StorageUnavailableError, match="not available"):
                bridge.schema("COUNTER", ALPHA)


class TestForwarding:
    @pytest.fixture
    def bridge(self, storage_client: TestClient) -> ActorStorageBridge:
        return ActorStorageBridge("http://testserver/", client=storage_client)

    def test_instances(self, bridge: ActorStorageBridge):
        response = bridge.instances("COUNTER")
        assert response.status_code == 200
        assert ALPHA in [i["id"] for i in response.json()["instances"]]

    def test_kv_with_query(self, bridge: ActorStorageBridge):
        response = bridge.kv("COUNTER", ALPHA, [("prefix", "user:")])
        body = response.json()
        assert body["meta"]["total"] == 2
        assert {e["key"]: e["value"] for e in body["entries"]} == {"user:age": 42, "user:name": "Ada"}

    def test_rows(self, bridge: ActorStorageBridge):
        response = bridge.rows("COUNTER", ALPHA, "events", {"limit": "1", "sort": "id", "dir": "desc"})
        body = response.json()
        assert body["rows"] == [{"id": 3, "kind": "reset"}]
        assert body["meta"] == {"limit": 1, "offset": 0}

    def test_query_body_is_passed_through(self, bridge: ActorStorageBridge):
        response = bridge.query("COUNTER", ALPHA, b'{"sql": "SELECT COUNT(*) AS n FROM events"}')
        assert response.json()["results"] == [{"n": 3}]

    def test_error_status_is_returned_unchanged(self, bridge: ActorStorageBridge):
        response = bridge.schema("COUNTER", "0" * 64)
        assert response.status_code == 404
        assert response.json() == {"error": f"Instance not found: {'0' * 64}", "success": False}

    def test_unknown_binding_is_404(self, bridge: ActorStorageBridge):
        assert bridge.instances("ROOM").status_code == 404

    def test_raw_bytes_values_are_base64(self, bridge: ActorStorageBridge):
        entries = bridge.kv("COUNTER", ALPHA, {"prefix": "raw"}).json()["entries"]
        assert entries == [{"key": "raw", "value": "AQI="}]


class TestRuntimeFetchProxy:
    def _proxy(self, seen: list[httpx.Request]) -> RuntimeFetchProxy:
        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"ok": True}, headers={"X-Upstream": "yes"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        return RuntimeFetchProxy("http://runtime.local", client=client)

    def test_adds_actor_headers(self):
        seen: list[httpx.Request] = []
        response = self._proxy(seen).fetch(
            "COUNTER", ALPHA, "POST", "increment", query={"by": "2"}, body=b"{}",
            headers={"content-type": "application/json", "host": "dashboard"},
        )
        assert response.status_code == 201
        (request,) = seen
        assert request.url == httpx.URL("http://runtime.local/increment?by=2")
        assert request.headers[ACTOR_BINDING_HEADER] == "COUNTER"
        assert request.headers[ACTOR_ID_HEADER] == ALPHA
        assert request.content == b"{}"

    def test_get_sends_no_body(self):
        seen: list[httpx.Request] = []
        self._proxy(seen).fetch("COUNTER", ALPHA, "GET", "/state", body=b"ignored")
        assert seen[0].content == b""

    def test_unset_runtime(self):
        with pytest.raises(StorageUnavailableError) as info:
            RuntimeFetchProxy(None).fetch("COUNTER", ALPHA, "GET", "/")
        assert "FLARESCOPE_RUNTIME_URL" in info.value.hint
