"""Relational database access: schema, paging, statements, row edits."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from flarescope.core.state_scanner import StateScanner
from flarescope.errors import BadRequestError
from flarescope.models.bindings import BindingKind
from flarescope.models.state import PhysicalStateFile
from flarescope.storage._files import resolve_state_file
from flarescope.storage._sqlite import (
    DEFAULT_BUSY_TIMEOUT_MS,
    QueryResult,
    clamp_page,
    describe_table,
    list_tables,
    open_database,
    quote_identifier,
    run_statement,
    select_rows,
)

logger = logging.getLogger(__name__)

DEFAULT_ROW_LIMIT = 100
HIDDEN_TABLE_PREFIXES = ("sqlite_", "_cf_", "_mf_")


class RelationalHandle:
    """Operations on one relational database file.

    The handle holds no connection; each method opens the file, does its
    work, and closes it again.
    """

    def __init__(self, file: PhysicalStateFile, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self._file = file
        self._busy_timeout_ms = busy_timeout_ms

    @property
    def file(self) -> PhysicalStateFile:
        return self._file

    def _connect(self):
        return open_database(self._file.path, busy_timeout_ms=self._busy_timeout_ms)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

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

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def execute(self, sql: str | None, params: Sequence[Any] | None = None) -> QueryResult:
        with self._connect() as conn:
            return run_statement(conn, sql, params)

    def insert_row(self, table: str, data: dict[str, Any]) -> QueryResult:
        quoted = quote_identifier(table)
        if data:
            columns = ", ".join(quote_identifier(col) for col in data)
            placeholders = ", ".join("?" for _ in data)
            sql = f"INSERT INTO {quoted} ({columns}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {quoted} DEFAULT VALUES"
        with self._connect() as conn:
            return run_statement(conn, sql, list(data.values()))

    def update_row(self, table: str, row_id: Any, data: dict[str, Any]) -> QueryResult:
        """Update the row whose ``id`` column equals *row_id*."""
        if not data:
            raise BadRequestError("No columns to update")
        assignments = ", ".join(f"{quote_identifier(col)} = ?" for col in data)
        sql = f"UPDATE {quote_identifier(table)} SET {assignments} WHERE id = ?"
        with self._connect() as conn:
            return run_statement(conn, sql, [*data.values(), row_id])

    def delete_row(self, table: str, row_id: Any) -> QueryResult:
        """Delete the row whose ``id`` column equals *row_id*."""
        with self._connect() as conn:
            return run_statement(conn, f"DELETE FROM {quote_identifier(table)} WHERE id = ?", [row_id])


class RelationalAccessor:
    """Lists relational database files and opens them by binding name."""

    def __init__(self, scanner: StateScanner, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self._scanner = scanner
        self._busy_timeout_ms = busy_timeout_ms

    def list_databases(self) -> list[dict[str, Any]]:
        manifest = self._scanner.manifest
        databases: list[dict[str, Any]] = []
        for i, f in enumerate(self._scanner.scan().relational):
            declaration = (
                manifest.find(BindingKind.RELATIONAL, f.matched_binding_name)
                if manifest and f.matched_binding_name
                else None
            )
            name = declaration.target("database_name") if declaration else None
            databases.append(
                {
                    "binding": f.matched_binding_name or f"database_{i}",
                    "database_name": name or f.stem,
                    "file": f.filename,
                }
            )
        return databases

    def open(self, binding: str) -> RelationalHandle:
        """Resolve *binding* to a database file.

        Raises
        ------
        NotFoundError
            If no file can be resolved for *binding*.
        """
        file = resolve_state_file(self._scanner.scan().relational, binding, "Database")
        return RelationalHandle(file, busy_timeout_ms=self._busy_timeout_ms)
