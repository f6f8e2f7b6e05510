"""Per-instance actor storage.

Every actor instance persists to its own database file under
``<actor-dir>/<service>-<ClassName>/<instance-id>.sqlite``.  Besides the
user's own tables, the runtime keeps a ``_cf_KV(key, value)`` table for
the key-value storage API; its values are structured-clone encoded and are
decoded here when possible.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from flarescope.core.state_scanner import StateScanner
from flarescope.core.v8_value import decode_or_raw
from flarescope.errors import NotFoundError, UnknownBindingError
from flarescope.models.bindings import BindingDeclaration, BindingKind
from flarescope.models.state import ActorInstanceStore, PhysicalStateFile
from flarescope.storage._sqlite import (
    DEFAULT_BUSY_TIMEOUT_MS,
    QueryResult,
    clamp_page,
    describe_table,
    list_tables,
    open_database,
    run_statement,
    select_rows,
    starts_with,
    table_exists,
)

logger = logging.getLogger(__name__)

DEFAULT_ROW_LIMIT = 50
DEFAULT_KV_LIMIT = 100
HIDDEN_TABLE_PREFIXES = ("sqlite_", "_cf_")
INTERNAL_KV_TABLE = "_cf_KV"


class ActorHandle:
    """Operations on the storage file of one actor instance."""

    def __init__(self, store: ActorInstanceStore, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self._store = store
        self._busy_timeout_ms = busy_timeout_ms

    @property
    def store(self) -> ActorInstanceStore:
        return self._store

    def _connect(self):
        return open_database(self._store.path, busy_timeout_ms=self._busy_timeout_ms)

    def schema(self) -> list[dict[str, Any]]:
        with self._connect() as conn:
            return list_tables(conn, HIDDEN_TABLE_PREFIXES)

    def table_info(self, table: str) -> dict[str, Any]:
        with self._connect() as conn:
            return describe_table(conn, table)

    def rows(
        self,
        table: str,
        *,
        limit: Any = None,
        offset: Any = None,
        sort: str | None = None,
        direction: str | None = None,
    ) -> dict[str, Any]:
        page_limit, page_offset = clamp_page(limit, offset, DEFAULT_ROW_LIMIT)
        with self._connect() as conn:
            rows = select_rows(
                conn, table, limit=page_limit, offset=page_offset, sort=sort, direction=direction
            )
        return {"rows": rows, "meta": {"limit": page_limit, "offset": page_offset}}

    def execute(self, sql: str | None, params: Sequence[Any] | None = None) -> QueryResult:
        with self._connect() as conn:
            return run_statement(conn, sql, params)

    def kv_entries(
        self, prefix: str | None = None, limit: Any = None, offset: Any = None
    ) -> dict[str, Any]:
        """Page through the internal key-value table.

        ``meta.total`` counts the entries matching *prefix*, not the
        whole table.
        """
        page_limit, page_offset = clamp_page(limit, offset, DEFAULT_KV_LIMIT)
        meta = {"limit": page_limit, "offset": page_offset, "total": 0}
        with self._connect() as conn:
            if not table_exists(conn, INTERNAL_KV_TABLE):
                return {"entries": [], "meta": meta}
            where = f"WHERE {starts_with('key')}" if prefix else ""
            params: list[Any] = [prefix, prefix] if prefix else []
            total = conn.execute(f"SELECT COUNT(*) FROM {INTERNAL_KV_TABLE} {where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT key, value FROM {INTERNAL_KV_TABLE} {where} ORDER BY key LIMIT ? OFFSET ?",
                [*params, page_limit, page_offset],
            ).fetchall()
        entries = [{"key": row["key"], "value": decode_or_raw(row["value"])} for row in rows]
        meta["total"] = total
        return {"entries": entries, "meta": meta}


class ActorStorageAccessor:
    """Enumerates actor classes and instances and opens instance storage."""

    def __init__(self, scanner: StateScanner, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self._scanner = scanner
        self._busy_timeout_ms = busy_timeout_ms

    def _declaration(self, binding: str) -> BindingDeclaration:
        manifest = self._scanner.manifest
        declaration = manifest.find(BindingKind.ACTOR, binding) if manifest else None
        if declaration is None:
            raise UnknownBindingError(f"Unknown actor binding: {binding}")
        return declaration

    def _files(self, binding: str) -> list[PhysicalStateFile]:
        return [f for f in self._scanner.scan().actors if f.matched_binding_name == binding]

    def list_classes(self) -> list[dict[str, Any]]:
        manifest = self._scanner.manifest
        if manifest is None:
            return []
        files = self._scanner.scan().actors
        return [
            {
                "binding": declaration.name,
                "className": declaration.class_name,
                "scriptName": declaration.script_name or None,
                "instanceCount": sum(1 for f in files if f.matched_binding_name == declaration.name),
            }
            for declaration in manifest.actors
        ]

    def list_instances(self, binding: str) -> dict[str, Any]:
        """Instances of *binding* sorted by instance id.

        Raises
        ------
        UnknownBindingError
            If *binding* is not an actor binding.
        """
        declaration = self._declaration(binding)
        ids = sorted(f.instance_id for f in self._files(binding) if f.instance_id)
        return {
            "binding": binding,
            "className": declaration.class_name,
            "instances": [
                {"id": instance_id, "binding": binding, "className": declaration.class_name}
                for instance_id in ids
            ],
        }

    def open(self, binding: str, instance_id: str) -> ActorHandle:
        """Open the storage of one instance.

        Raises
        ------
        UnknownBindingError
            If *binding* is not an actor binding.
        NotFoundError
            If the instance has no storage file.
        """
        declaration = self._declaration(binding)
        for file in self._files(binding):
            if file.instance_id == instance_id:
                store = ActorInstanceStore(
                    binding=binding,
                    class_name=declaration.class_name,
                    instance_id=instance_id,
                    path=file.path,
                )
                return ActorHandle(store, busy_timeout_ms=self._busy_timeout_ms)
        raise NotFoundError(f"Instance not found: {instance_id}")
