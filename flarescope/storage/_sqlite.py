"""Connection and statement helpers shared by every storage accessor.

Each operation opens its own connection and closes it before returning,
on success and on error.  Consistency with the runtime process writing the
same file relies on WAL journaling and the busy timeout; there is no
in-process locking.
"""

from __future__ import annotations

import contextlib
import logging
import re
import sqlite3
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from flarescope.errors import BadRequestError, NotFoundError, QueryExecutionError

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 5000
MAX_PAGE_SIZE = 1000

_READ_KEYWORDS = ("SELECT", "PRAGMA", "EXPLAIN", "WITH", "VALUES")

# Statement keywords that can follow a WITH clause, mapped to "is a read".
_WITH_BODIES = {
    "SELECT": True,
    "VALUES": True,
    "INSERT": False,
    "REPLACE": False,
    "UPDATE": False,
    "DELETE": False,
}

_SQL_TOKEN = re.compile(
    r"""
    --[^\n]*
  | /\*.*?(?:\*/|\Z)
  | '(?:[^']|'')*'?
  | "(?:[^"]|"")*"?
  | `(?:[^`]|``)*`?
  | \[[^\]]*\]?
  | (?P<open>\()
  | (?P<close>\))
  | (?P<word>[A-Za-z_][A-Za-z0-9_$]*)
    """,
    re.VERBOSE | re.DOTALL,
)


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def open_database(
    path: Path, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
) -> Iterator[sqlite3.Connection]:
    """Open *path* for one operation and always close it afterwards.

    ``sqlite3.Error`` raised inside the block is re-raised as
    ``QueryExecutionError`` carrying the engine's message.

    Raises
    ------
    NotFoundError
        If *path* does not exist; a missing file is never created.
    """
    path = Path(path)
    if not path.is_file():
        raise NotFoundError(f"Database file not found: {path.name}")

    conn = sqlite3.connect(
        str(path),
        timeout=busy_timeout_ms / 1000.0,
        isolation_level=None,
        check_same_thread=False,
    )
    try:
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        conn.execute("PRAGMA journal_mode=WAL")
        yield conn
    except sqlite3.Error as exc:
        logger.debug("SQLite error on %s: %s", path.name, exc)
        raise QueryExecutionError(str(exc)) from exc
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Statement helpers
# ---------------------------------------------------------------------------


def quote_identifier(name: str) -> str:
    """Quote a table or column name for interpolation into SQL."""
    return '"' + name.replace('"', '""') + '"'


def starts_with(column: str) -> str:
    """Case-sensitive prefix test on *column*; bind the prefix twice.

    ``LIKE`` folds ASCII case, so it cannot tell ``user:`` from ``USER:``.
    """
    return f"substr({column}, 1, length(?)) = ?"


def _to_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def clamp_page(
    limit: Any, offset: Any, default: int, maximum: int = MAX_PAGE_SIZE
) -> tuple[int, int]:
    """Normalise pagination input.

    A missing, unparsable, zero, or negative *limit* becomes *default*;
    anything above *maximum* is capped.  A missing, unparsable, or negative
    *offset* becomes 0.
    """
    parsed_limit = _to_int(limit)
    if parsed_limit is None or parsed_limit < 1:
        parsed_limit = default
    parsed_offset = _to_int(offset)
    if parsed_offset is None or parsed_offset < 0:
        parsed_offset = 0
    return min(parsed_limit, maximum), parsed_offset


def _top_level_words(sql: str) -> Iterator[str]:
    """Yield upper-cased keywords outside comments, literals and parentheses."""
    depth = 0
    for match in _SQL_TOKEN.finditer(sql):
        if match.group("open"):
            depth += 1
        elif match.group("close"):
            depth = max(depth - 1, 0)
        elif match.group("word") and depth == 0:
            yield match.group("word").upper()


def is_read_statement(sql: str) -> bool:
    """Classify *sql* by its leading keyword, ignoring comments.

    A ``WITH`` statement is classified by the statement its common table
    expressions feed, so ``WITH x AS (...) DELETE ...`` is a write.
    """
    words = _top_level_words(sql)
    first = next(words, "")
    if first != "WITH":
        return first in _READ_KEYWORDS
    for word in words:
        if word in _WITH_BODIES:
            return _WITH_BODIES[word]
    return True



def rows_to_dicts(rows: Sequence[sqlite3.Row]) -> list[dict[str, Any]]:
    return [dict(row) for row in rows]


class QueryResult(BaseModel):
    """Outcome of one arbitrary statement."""

    model_config = ConfigDict(frozen=True)

    is_read: bool
    results: list[dict[str, Any]] = []
    changes: int = 0
    last_row_id: int | None = None

    @property
    def row_count(self) -> int:
        return len(self.results)

    def to_payload(self) -> dict[str, Any]:
        if self.is_read:
            return {
                "success": True,
                "results": self.results,
                "rowCount": self.row_count,
                "meta": {"changes": 0},
            }
        return {
            "success": True,
            "meta": {"changes": self.changes, "last_row_id": self.last_row_id},
        }


def run_statement(
    conn: sqlite3.Connection, sql: str | None, params: Sequence[Any] | None = None
) -> QueryResult:
    """Execute one statement, returning rows for reads and counts for writes.

    Raises
    ------
    BadRequestError
        If *sql* is empty.
    """
    if not sql or not sql.strip():
        raise BadRequestError("SQL query is required")
    bound = list(params or [])
    if is_read_statement(sql):
        rows = conn.execute(sql, bound).fetchall()
        return QueryResult(is_read=True, results=rows_to_dicts(rows))
    cursor = conn.execute(sql, bound)
    return QueryResult(is_read=False, changes=cursor.rowcount, last_row_id=cursor.lastrowid)


# ---------------------------------------------------------------------------
# Introspection shared by relational and actor storage
# ---------------------------------------------------------------------------


def list_tables(conn: sqlite3.Connection, hidden_prefixes: Sequence[str]) -> list[dict[str, Any]]:
    """Return ``{name, sql}`` for user tables, hiding internal prefixes."""
    clauses = " ".join(f"AND NOT {starts_with('name')}" for _ in hidden_prefixes)
    rows = conn.execute(
        f"SELECT name, sql FROM sqlite_master WHERE type='table' {clauses} ORDER BY name",
        [part for prefix in hidden_prefixes for part in (prefix, prefix)],
    ).fetchall()
    return rows_to_dicts(rows)


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name = ? LIMIT 1", (table,)
    ).fetchone()
    return row is not None


def describe_table(conn: sqlite3.Connection, table: str) -> dict[str, Any]:
    """Columns, primary keys, indexes, foreign keys, and row count of *table*.

    Raises
    ------
    NotFoundError
        If *table* does not exist.
    """
    if not table_exists(conn, table):
        raise NotFoundError(f"Table not found: {table}")
    quoted = quote_identifier(table)
    columns = rows_to_dicts(conn.execute(f"PRAGMA table_info({quoted})").fetchall())
    indexes = rows_to_dicts(conn.execute(f"PRAGMA index_list({quoted})").fetchall())
    foreign_keys = rows_to_dicts(conn.execute(f"PRAGMA foreign_key_list({quoted})").fetchall())
    count = conn.execute(f"SELECT COUNT(*) FROM {quoted}").fetchone()[0]
    primary_keys = [
        col["name"] for col in sorted((c for c in columns if c["pk"]), key=lambda c: c["pk"])
    ]
    return {
        "table": table,
        "columns": columns,
        "primaryKeys": primary_keys,
        "indexes": indexes,
        "foreignKeys": foreign_keys,
        "rowCount": count,
    }


def select_rows(
    conn: sqlite3.Connection,
    table: str,
    *,
    limit: int,
    offset: int,
    sort: str | None = None,
    direction: str | None = None,
) -> list[dict[str, Any]]:
    """One page of *table*, optionally ordered by a single column."""
    sql = f"SELECT * FROM {quote_identifier(table)}"
    if sort:
        order = "DESC" if (direction or "").upper() == "DESC" else "ASC"
        sql += f" ORDER BY {quote_identifier(sort)} {order}"
    sql += " LIMIT ? OFFSET ?"
    return rows_to_dicts(conn.execute(sql, (limit, offset)).fetchall())
