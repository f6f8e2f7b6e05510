"""Tests for relational database access."""

from __future__ import annotations

import pytest

from flarescope.core.state_scanner import StateScanner
from flarescope.errors import BadRequestError, NotFoundError, QueryExecutionError
from flarescope.storage.relational import RelationalAccessor, RelationalHandle


@pytest.fixture
def accessor(scanner: StateScanner) -> RelationalAccessor:
    return RelationalAccessor(scanner)


@pytest.fixture
def db(accessor: RelationalAccessor) -> RelationalHandle:
    return accessor.open("DB")


class TestListAndOpen:
    def test_list_databases(self, accessor: RelationalAccessor):
        assert accessor.list_databases() == [
            {"binding": "DB", "database_name": "app-db", "file": "d1hash0001.sqlite"}
        ]

    def test_open_by_index(self, accessor: RelationalAccessor):
        assert accessor.open("0").file.filename == "d1hash0001.sqlite"

    def test_unknown_binding(self, accessor: RelationalAccessor):
        with pytest.raises(NotFoundError, match="Database not found"):
            accessor.open("OTHER")


class TestIntrospection:
    def test_schema_hides_internal_tables(self, db: RelationalHandle):
        assert [t["name"] for t in db.schema()] == ["users"]

    def test_table_info(self, db: RelationalHandle):
        info = db.table_info("users")
        assert [c["name"] for c in info["columns"]] == ["id", "name", "avatar"]
        assert info["primaryKeys"] == ["id"]
        assert info["rowCount"] == 3
        assert [i["name"] for i in info["indexes"]] == ["idx_users_name"]

    def test_missing_table(self, db: RelationalHandle):
        with pytest.raises(NotFoundError, match="Table not found"):
            db.table_info("nope")


class TestRows:
    def test_default_page(self, db: RelationalHandle):
        page = db.rows("users")
        assert len(page["rows"]) == 3
        assert page["meta"] == {"limit": 100, "offset": 0}

    def test_invalid_paging_falls_back(self, db: RelationalHandle):
        assert db.rows("users", limit="-1", offset="-99")["meta"] == {"limit": 100, "offset": 0}

    def test_sorting_and_paging(self, db: RelationalHandle):
        page = db.rows("users", limit=2, offset=0, sort="name", direction="desc")
        assert [r["name"] for r in page["rows"]] == ["linus", "grace"]

    def test_blob_columns_are_bytes(self, db: RelationalHandle):
        row = db.rows("users", sort="id")["rows"][0]
        assert row["avatar"] == b"\x89PNG"


class TestStatements:
    def test_read_query(self, db: RelationalHandle):
        result = db.execute("SELECT name FROM users WHERE id = ?", [2])
        assert result.results == [{"name": "grace"}]

    def test_write_query(self, db: RelationalHandle):
        result = db.execute("UPDATE users SET name = 'x' WHERE id > 1")
        assert result.changes == 2

    def test_engine_error_text(self, db: RelationalHandle):
        with pytest.raises(QueryExecutionError, match="no such table: ghosts"):
            db.execute("SELECT * FROM ghosts")

    def test_insert_update_delete(self, db: RelationalHandle):
        inserted = db.insert_row("users", {"name": "new"})
        assert inserted.last_row_id == 4

        assert db.update_row("users", 4, {"name": "renamed"}).changes == 1
        assert db.execute("SELECT name FROM users WHERE id = 4").results == [{"name": "renamed"}]

        assert db.delete_row("users", 4).changes == 1
        assert db.table_info("users")["rowCount"] == 3

    def test_update_requires_columns(self, db: RelationalHandle):
        with pytest.raises(BadRequestError):
            db.update_row("users", 1, {})

    def test_constraint_violation(self, db: RelationalHandle):
        with pytest.raises(QueryExecutionError, match="NOT NULL"):
            db.insert_row("users", {})
