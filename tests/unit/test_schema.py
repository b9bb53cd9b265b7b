"""
Unit tests for the schema manager and statement set.
"""

import sqlite3

import pytest

from sqlite_sessions.errors.exceptions import InvalidTableNameError
from sqlite_sessions.session.schema import SchemaManager, StatementSet, validate_table_name


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:", isolation_level=None)
    yield connection
    connection.close()


def columns(conn, table):
    return [(row[1], row[2], row[3], row[5]) for row in conn.execute(f"PRAGMA table_info({table})")]


class TestValidateTableName:

    @pytest.mark.parametrize("name", ["sessions", "_private", "Sessions_2024", "a" * 63])
    def test_accepts_identifiers(self, name):
        assert validate_table_name(name) == name

    @pytest.mark.parametrize("name", [
        "",
        "9lives",
        "sessions;",
        "sessions DROP",
        "\"quoted\"",
        "a" * 64,
        "sqlite_sessions",
        "SQLITE_stat1",
    ])
    def test_rejects_unsafe_names(self, name):
        with pytest.raises(InvalidTableNameError) as exc_info:
            validate_table_name(name)
        assert exc_info.value.details["field"] == "table"

    def test_rejects_non_strings(self):
        with pytest.raises(InvalidTableNameError):
            validate_table_name(None)


class TestSchemaManager:

    def test_ensure_table_creates_table_and_index(self, conn):
        schema = SchemaManager("sessions")
        schema.ensure_table(conn)

        assert columns(conn, "sessions") == [
            ("id", "TEXT", 0, 1),
            ("expires_at", "INTEGER", 1, 0),
            ("data", "BLOB", 0, 0),
        ]
        indexes = [row[1] for row in conn.execute("PRAGMA index_list(sessions)")]
        assert "sessions_expires_at" in indexes

    def test_ensure_table_is_idempotent_and_keeps_rows(self, conn):
        schema = SchemaManager("sessions")
        schema.ensure_table(conn)
        conn.execute("INSERT INTO sessions VALUES ('a', 1, 'x')")

        schema.ensure_table(conn)

        assert conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0] == 1

    def test_drop_table_when_missing_is_fine(self, conn):
        schema = SchemaManager("sessions")
        schema.drop_table(conn)
        assert schema.table_exists(conn) is False

    def test_recreate_empties_table(self, conn):
        schema = SchemaManager("sessions")
        schema.ensure_table(conn)
        conn.execute("INSERT INTO sessions VALUES ('a', 1, 'x')")

        schema.recreate(conn)

        assert schema.table_exists(conn)
        assert conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0] == 0
        assert not conn.in_transaction

    def test_recreate_rolls_back_on_failure(self, conn):
        schema = SchemaManager("sessions")
        schema.ensure_table(conn)
        conn.execute("INSERT INTO sessions VALUES ('a', 1, 'x')")
        # Let the drop succeed and the create fail inside the transaction
        schema.create_table_sql = "CREATE TABLE broken ("

        with pytest.raises(sqlite3.Error):
            schema.recreate(conn)

        assert not conn.in_transaction
        assert conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0] == 1

    def test_invalid_table_rejected_at_construction(self):
        with pytest.raises(InvalidTableNameError):
            SchemaManager("x; DROP TABLE y")


class TestStatementSet:

    @pytest.fixture
    def statements(self, conn):
        SchemaManager("web").ensure_table(conn)
        return StatementSet.for_table("web")

    def test_statements_bound_to_table(self, statements):
        for sql in (
            statements.gc,
            statements.get_active,
            statements.upsert,
            statements.destroy,
            statements.count_active,
            statements.touch,
            statements.list_active,
            statements.expires_at,
        ):
            assert " web" in sql

    def test_statements_compile(self, conn, statements):
        conn.execute(statements.upsert, {"id": "a", "expires_at": 10, "data": "1"})
        conn.execute(statements.upsert, {"id": "a", "expires_at": 20, "data": "2"})
        conn.execute(statements.upsert, {"id": "b", "expires_at": 5, "data": "3"})

        assert conn.execute(statements.get_active, ("a", 20)).fetchone() == ("2",)
        assert conn.execute(statements.get_active, ("a", 21)).fetchone() is None
        assert conn.execute(statements.count_active, (6,)).fetchone() == (1,)
        assert conn.execute(statements.list_active, (0,)).fetchall() == [("2",), ("3",)]

        assert conn.execute(statements.touch, (30, "b", 6)).rowcount == 0
        assert conn.execute(statements.touch, (30, "a", 6)).rowcount == 1
        assert conn.execute(statements.expires_at, ("a",)).fetchone() == (30,)

        assert conn.execute(statements.gc, (6,)).rowcount == 1
        assert conn.execute(statements.destroy, ("a",)).rowcount == 1
        assert conn.execute(statements.destroy, ("a",)).rowcount == 0
