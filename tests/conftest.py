"""Shared test fixtures for Flarescope.

The ``state_root`` fixture lays out runtime state the way the runtime
does: one SQLite file per database, namespace, bucket and actor instance,
plus blob directories for key-value and object-store values.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from flarescope.api.app import create_app
from flarescope.api.storage_server import create_storage_app
from flarescope.bridge.actor_bridge import ActorStorageBridge
from flarescope.config import ScopeSettings
from flarescope.core.config_resolver import resolve_all_configs
from flarescope.core.hasher import actor_id_from_name, md5_hex
from flarescope.core.manifest_merger import merge_manifest
from flarescope.core.state_scanner import StateScanner
from flarescope.models.bindings import DiscoveredConfig
from flarescope.models.manifest import Manifest

NOW = 1_700_000_000
FAR_FUTURE = 4_102_444_800
COUNTER_ALPHA = actor_id_from_name("Counter", "alpha")
COUNTER_BETA = actor_id_from_name("Counter", "beta")

APP_CONFIG = """\
name = "my-app"
main = "src/index.ts"
compatibility_date = "2024-11-01"

[vars]
ENVIRONMENT = "development"
API_TOKEN = "abc"

[[d1_databases]]
binding = "DB"
database_name = "app-db"
database_id = "d1-0001"

[[kv_namespaces]]
binding = "CACHE"
id = "kv-ns-1"

[[r2_buckets]]
binding = "ASSETS"
bucket_name = "assets"

[[durable_objects.bindings]]
name = "COUNTER"
class_name = "Counter"

[[queues.producers]]
binding = "JOBS"
queue = "jobs"

[[queues.consumers]]
queue = "jobs"
max_batch_size = 5
"""

# value encodings: 5, "Ada", 42, and two bytes that are not a serialized value
ACTOR_KV = {
    "count": b"\xff\x0fI\x0a",
    "user:name": b'\xff\x0f"\x03Ada',
    "user:age": b"\xff\x0fI\x54",
    "raw": b"\x01\x02",
}


# ---------------------------------------------------------------------------
# Low-level builders
# ---------------------------------------------------------------------------


def _connect(path: Path) -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path), isolation_level=None)


def build_relational_db(path: Path) -> None:
    conn = _connect(path)
    try:
        conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, avatar BLOB)")
        conn.execute("CREATE INDEX idx_users_name ON users(name)")
        conn.executemany(
            "INSERT INTO users (id, name, avatar) VALUES (?, ?, ?)",
            [(1, "ada", b"\x89PNG"), (2, "grace", None), (3, "linus", None)],
        )
        conn.execute("CREATE TABLE _cf_METADATA (key TEXT, value TEXT)")
    finally:
        conn.close()


def build_key_value_db(path: Path, blob_dir: Path) -> None:
    blob_dir.mkdir(parents=True, exist_ok=True)
    entries = [
        ("config:lang", "en", None, None),
        ("config:theme", "dark", None, None),
        ("config_flag", "on", 0, None),
        ("expired", "old", NOW - 60, None),
        ("user:1", '{"name": "Ada"}', FAR_FUTURE, json.dumps({"role": "admin"})),
    ]
    conn = _connect(path)
    try:
        conn.execute(
            "CREATE TABLE _mf_entries (key TEXT PRIMARY KEY, blob_id TEXT NOT NULL, "
            "expiration INTEGER, metadata TEXT)"
        )
        for index, (key, value, expiration, metadata) in enumerate(entries):
            blob_id = f"seed{index:04d}"
            (blob_dir / blob_id).write_text(value, encoding="utf-8")
            conn.execute(
                "INSERT INTO _mf_entries VALUES (?, ?, ?, ?)", (key, blob_id, expiration, metadata)
            )
    finally:
        conn.close()


def build_object_store_db(path: Path, blob_dir: Path) -> None:
    blob_dir.mkdir(parents=True, exist_ok=True)
    objects = [
        ("docs/readme.txt", b"hello", "text/plain"),
        ("images/a.png", b"\x89PNG-a", "image/png"),
        ("images/b.png", b"\x89PNG-b", "image/png"),
        ("images/icons/c.png", b"\x89PNG-c", "image/png"),
        ("top.txt", b"top", "text/plain"),
    ]
    conn = _connect(path)
    try:
        conn.execute(
            "CREATE TABLE _mf_objects (key TEXT PRIMARY KEY, blob_id TEXT, version TEXT, "
            "size INTEGER, etag TEXT, uploaded INTEGER, checksums TEXT, "
            "http_metadata TEXT, custom_metadata TEXT)"
        )
        for index, (key, data, content_type) in enumerate(objects):
            blob_id = f"obj{index:04d}"
            (blob_dir / blob_id).write_bytes(data)
            conn.execute(
                "INSERT INTO _mf_objects VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    key,
                    blob_id,
                    f"v{index}",
                    len(data),
                    md5_hex(data),
                    NOW * 1000,
                    json.dumps({"md5": md5_hex(data)}),
                    json.dumps({"contentType": content_type}),
                    json.dumps({"origin": "seed"}),
                ),
            )
    finally:
        conn.close()


def build_actor_db(path: Path, kv: dict[str, bytes] | None = None) -> None:
    conn = _connect(path)
    try:
        conn.execute("CREATE TABLE _cf_KV (key TEXT PRIMARY KEY, value BLOB)")
        conn.executemany("INSERT INTO _cf_KV VALUES (?, ?)", list((kv or {}).items()))
        conn.execute("CREATE TABLE events (id INTEGER PRIMARY KEY, kind TEXT)")
        conn.executemany(
            "INSERT INTO events (kind) VALUES (?)", [("increment",), ("increment",), ("reset",)]
        )
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Project fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A service directory holding one descriptor with every binding kind."""
    project = tmp_path / "app"
    project.mkdir()
    (project / "wrangler.toml").write_text(APP_CONFIG, encoding="utf-8")
    return project


@pytest.fixture
def configs(project_dir: Path) -> list[DiscoveredConfig]:
    return resolve_all_configs(project_dir / "wrangler.toml")


@pytest.fixture
def manifest(configs: list[DiscoveredConfig]) -> Manifest:
    return merge_manifest(configs)


@pytest.fixture
def state_root(project_dir: Path) -> Path:
    """Seeded runtime state under ``<project>/.wrangler/state/v3``."""
    root = project_dir / ".wrangler" / "state" / "v3"
    build_relational_db(root / "d1" / "miniflare-D1DatabaseObject" / "d1hash0001.sqlite")
    build_key_value_db(
        root / "kv" / "miniflare-KVNamespaceObject" / "kvhash0001.sqlite",
        root / "kv" / "kv-ns-1" / "blobs",
    )
    build_object_store_db(
        root / "r2" / "miniflare-R2BucketObject" / "r2hash0001.sqlite",
        root / "r2" / "assets" / "blobs",
    )
    build_actor_db(root / "do" / "my-app-Counter" / f"{COUNTER_ALPHA}.sqlite", ACTOR_KV)
    build_actor_db(root / "do" / "my-app-Counter" / f"{COUNTER_BETA}.sqlite")
    return root


@pytest.fixture
def scanner(project_dir: Path, manifest: Manifest, state_root: Path) -> StateScanner:
    return StateScanner(project_dir, manifest)


@pytest.fixture
def clock() -> Callable[[], float]:
    """A frozen clock at ``NOW``."""
    return lambda: float(NOW)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> ScopeSettings:
    return ScopeSettings(actor_storage_url=None, runtime_url=None, debug=False)


@pytest.fixture
def storage_client(scanner: StateScanner) -> TestClient:
    """In-process client for the host-side actor storage server."""
    return TestClient(create_storage_app(scanner))


@pytest.fixture
def api_client(
    test_settings: ScopeSettings,
    manifest: Manifest,
    scanner: StateScanner,
    storage_client: TestClient,
):
    """Dashboard API whose actor bridge talks to the in-process storage app."""
    bridge = ActorStorageBridge("http://testserver", client=storage_client)
    app = create_app(test_settings, manifest=manifest, scanner=scanner, bridge=bridge)
    with TestClient(app) as client:
        yield client
