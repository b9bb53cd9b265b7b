"""
Schema and statement set for the session table.

The table name is validated once and then interpolated into every piece
of SQL; values always travel as bound parameters.
"""

import re
import sqlite3
from dataclasses import dataclass

from sqlite_sessions.errors.exceptions import InvalidTableNameError

DEFAULT_TABLE = "sessions"

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def validate_table_name(name: str) -> str:
    """
    Check that ``name`` can be spliced into SQL as a bare identifier.

    Args:
        name: Candidate table name

    Returns:
        The name, unchanged

    Raises:
        InvalidTableNameError: If the name is not a plain identifier or
            uses SQLite's reserved ``sqlite_`` prefix.
    """
    if not isinstance(name, str) or not TABLE_NAME_PATTERN.match(name):
        raise InvalidTableNameError(
            f"Invalid table name {name!r}: use letters, digits and underscores, "
            "starting with a letter or underscore (max 63 characters)",
            details={"field": "table", "value": repr(name)},
        )
    if name.lower().startswith("sqlite_"):
        raise InvalidTableNameError(
            f"Invalid table name {name!r}: the sqlite_ prefix is reserved",
            details={"field": "table", "value": name},
        )
    return name


class SchemaManager:
    """
    Owns the on-disk shape of a session record.

    Columns: ``id TEXT PRIMARY KEY``, ``expires_at INTEGER NOT NULL``
    (epoch milliseconds) and ``data BLOB``, plus an index on
    ``expires_at`` for the expiry predicates and the GC sweep.
    """

    def __init__(self, table: str = DEFAULT_TABLE):
        self.table = validate_table_name(table)
        self.index = f"{self.table}_expires_at"
        self.create_table_sql = (
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "id TEXT PRIMARY KEY, "
            "expires_at INTEGER NOT NULL, "
            "data BLOB)"
        )
        self.create_index_sql = (
            f"CREATE INDEX IF NOT EXISTS {self.index} ON {self.table}(expires_at)"
        )
        self.drop_table_sql = f"DROP TABLE IF EXISTS {self.table}"

    def ensure_table(self, conn: sqlite3.Connection) -> None:
        """Create the table and its index if missing. Safe to repeat."""
        conn.execute(self.create_table_sql)
        conn.execute(self.create_index_sql)

    def drop_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(self.drop_table_sql)

    def recreate(self, conn: sqlite3.Connection) -> None:
        """
        Drop and re-create the table in a single transaction.

        SQLite DDL is transactional, so readers see either the old table
        or the new empty one, never a missing table. On failure the
        transaction is rolled back and the error re-raised.

        Expects a connection in autocommit mode (``isolation_level=None``).
        """
        conn.execute("BEGIN IMMEDIATE")
        try:
            self.drop_table(conn)
            self.ensure_table(conn)
        except sqlite3.Error:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def table_exists(self, conn: sqlite3.Connection) -> bool:
        row = conn.execute(
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?",
            (self.table,),
        ).fetchone()
        return bool(row[0])


@dataclass(frozen=True)
class StatementSet:
    """
    The fixed SQL used by the store, bound to one table name.

    The connection's statement cache keeps these compiled; SQLite
    re-prepares them on its own after ``recreate`` changes the schema.
    """

    gc: str
    get_active: str
    upsert: str
    destroy: str
    count_active: str
    touch: str
    list_active: str
    expires_at: str

    @classmethod
    def for_table(cls, table: str) -> "StatementSet":
        table = validate_table_name(table)
        return cls(
            gc=f"DELETE FROM {table} WHERE expires_at < ?",
            get_active=f"SELECT data FROM {table} WHERE id = ? AND expires_at >= ?",
            upsert=(
                f"INSERT OR REPLACE INTO {table} (id, expires_at, data) "
                "VALUES (:id, :expires_at, :data)"
            ),
            destroy=f"DELETE FROM {table} WHERE id = ?",
            count_active=f"SELECT COUNT(id) FROM {table} WHERE expires_at >= ?",
            touch=f"UPDATE {table} SET expires_at = ? WHERE id = ? AND expires_at >= ?",
            list_active=f"SELECT data FROM {table} WHERE expires_at >= ? ORDER BY id",
            expires_at=f"SELECT expires_at FROM {table} WHERE id = ?",
        )
