"""Tests for the PostgreSQL and MySQL backends without a server."""

import pytest

from db_abstraction import (
    ColumnSpec,
    ColumnType,
    MySQLDatabase,
    NotConnectedError,
    PostgresDatabase,
)
from db_abstraction.backends.mysql import MySQLSession
from db_abstraction.backends.postgres import PostgresSession


class FakeCursor:
    def __init__(self, description=None, rows=(), rowcount=-1, lastrowid=None):
        self.description = description
        self.rows = list(rows)
        self.rowcount = rowcount
        self.lastrowid = lastrowid
        self.executed = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, query, args=None):
        self.executed = (query, args)

    async def fetchall(self):
        return self.rows


class FakeConnection:
    def __init__(self, cursor: FakeCursor):
        self._cursor = cursor

    def cursor(self, *args, **kwargs):
        return self._cursor


COLUMNS = [
    ColumnSpec("id", ColumnType.UINT64),
    ColumnSpec("email", ColumnType.BLOB, unique=True),
]


class TestMySQLSession:
    async def test_select_counts_rows(self):
        cursor = FakeCursor(description=[("a",)], rows=[{"a": 1}, {"a": 2}], rowcount=2)
        result = await MySQLSession(FakeConnection(cursor)).execute("SELECT a FROM t", ())

        assert result == (2, [{"a": 1}, {"a": 2}])

    async def test_insert_returns_last_insert_id(self):
        cursor = FakeCursor(rowcount=1, lastrowid=42)
        result = await MySQLSession(FakeConnection(cursor)).execute(
            "INSERT INTO t (a) VALUES (%s)", [1]
        )

        assert result.count == 42
        assert cursor.executed == ("INSERT INTO t (a) VALUES (%s)", (1,))

    async def test_update_returns_affected_rows(self):
        cursor = FakeCursor(rowcount=3)
        result = await MySQLSession(FakeConnection(cursor)).execute("UPDATE t SET a = 1", ())

        assert result == (3, [])
        assert cursor.executed[1] == ()


class TestPostgresSession:
    async def test_select_returns_dict_rows(self):
        cursor = FakeCursor(description=[("a",)], rows=[{"a": 1}], rowcount=1)
        result = await PostgresSession(FakeConnection(cursor)).execute(
            "SELECT a FROM t WHERE b = $1", [5]
        )

        assert result == (1, [{"a": 1}])
        assert cursor.executed == ("SELECT a FROM t WHERE b = $1", (5,))

    async def test_ddl_without_params(self):
        cursor = FakeCursor(rowcount=-1)
        result = await PostgresSession(FakeConnection(cursor)).execute("CREATE TABLE t (a int)", ())

        assert result == (0, [])
        assert cursor.executed == ("CREATE TABLE t (a int)", None)


class TestPooledDatabase:
    async def test_operations_require_open(self):
        db = PostgresDatabase()

        with pytest.raises(NotConnectedError):
            await db.query("SELECT 1")
        with pytest.raises(NotConnectedError):
            async with db.connection():
                pass

    async def test_close_before_open_is_a_no_op(self):
        db = MySQLDatabase()
        await db.close()
        assert not db.is_open

    def test_mysql_table_options_default_and_override(self):
        db = MySQLDatabase()
        prepared = db.prepare_create_table("accounts", COLUMNS, ["id"])

        assert prepared.table.endswith(
            "PRIMARY KEY (id)) ENGINE=InnoDB PACK_KEYS=1 ROW_FORMAT=COMPRESSED"
        )
        assert "id bigint(20) unsigned NOT NULL" in prepared.table

        db.table_options = None
        assert db.prepare_create_table("accounts", COLUMNS, ["id"]).table.endswith(
            "PRIMARY KEY (id))"
        )
        assert db.prepare_create_table(
            "accounts", COLUMNS, ["id"], "ENGINE=MyISAM"
        ).table.endswith("ENGINE=MyISAM")

    def test_type_accessors(self):
        db = PostgresDatabase()
        assert (db.hash_type, db.blob_type, db.uint32_type, db.uint64_type) == (
            "char(64)",
            "text",
            "numeric(10)",
            "numeric(20)",
        )

    def test_prepare_multi_update_per_dialect(self):
        rows = [(1, "a@x")]

        assert MySQLDatabase().prepare_multi_update(
            "accounts", ["id"], ["email"], rows
        ).endswith("ON DUPLICATE KEY UPDATE email = VALUES(email)")
        assert PostgresDatabase().prepare_multi_update(
            "accounts", ["id"], ["email"], rows
        ).endswith("ON CONFLICT (id) DO UPDATE SET email = excluded.email")
