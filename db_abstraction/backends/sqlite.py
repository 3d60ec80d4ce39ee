"""SQLite backend.

SQLite gets a single connection. Every access to it, pragmas included, goes
through a DrainScheduler so callers can share the database the same way they
share a pool on the other backends.
"""

import logging
import os
import re
from collections.abc import Sequence
from typing import Any

import aiosqlite

from db_abstraction.core.db import Database
from db_abstraction.core.errors import CompileError
from db_abstraction.core.responses import QueryResult
from db_abstraction.dialect import DBType, is_read_statement, statement_verb
from db_abstraction.scheduler import DEFAULT_INTERVAL, DrainScheduler


logger = logging.getLogger(__name__)

# Pragmas that take their argument as a function call: PRAGMA name(value)
PRAGMA_FUNCTION_CALLS = frozenset(
    {
        "quick_check",
        "integrity_check",
        "incremental_vacuum",
        "foreign_key_check",
        "foreign_key_list",
        "index_info",
        "index_list",
        "index_xinfo",
        "table_info",
        "table_xinfo",
        "optimize",
    }
)

_PRAGMA_NAME = re.compile(r"^(?:[a-z_][a-z0-9_]*\.)?[a-z_][a-z0-9_]*$")


def _pragma_name(option: str) -> str:
    option = option.strip().lower()
    if not _PRAGMA_NAME.match(option):
        raise CompileError(f"Invalid pragma name: {option!r}")
    return option


def pragma_statement(option: str, value: bool | int | float | str) -> str:
    """Build a PRAGMA assignment, or a call for the function-style pragmas."""
    option = _pragma_name(option)
    if isinstance(value, bool):
        value = "ON" if value else "OFF"

    if option.rsplit(".", 1)[-1] in PRAGMA_FUNCTION_CALLS:
        return f"PRAGMA {option}({value})"
    return f"PRAGMA {option} = {value}"


class SQLiteSession:
    """The sole connection, used only from the scheduler's drain cycle."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def begin(self) -> None:
        await self._conn.execute("BEGIN TRANSACTION")

    async def commit(self) -> None:
        await self._conn.execute("COMMIT")

    async def rollback(self) -> None:
        await self._conn.execute("ROLLBACK")

    async def read(self, query: str, params: Sequence[Any]) -> QueryResult:
        async with self._conn.execute(query, tuple(params)) as cursor:
            rows = [dict(row) for row in await cursor.fetchall()]
        return QueryResult(len(rows), rows)

    async def write(self, query: str, params: Sequence[Any]) -> QueryResult:
        verb = statement_verb(query)
        async with self._conn.execute(query, tuple(params)) as cursor:
            if verb == "insert":
                count = cursor.lastrowid or 0
            elif verb in ("update", "delete"):
                count = cursor.rowcount
            else:
                count = 0
        return QueryResult(count, [])

    async def execute(self, query: str, params: Sequence[Any]) -> QueryResult:
        if is_read_statement(query):
            return await self.read(query, params)
        return await self.write(query, params)

    async def close(self) -> None:
        await self._conn.close()


class SQLiteDatabase(Database):
    db_type = DBType.SQLITE

    def __init__(self, path: str, *, interval: float = DEFAULT_INTERVAL, **kwargs: Any):
        super().__init__(**kwargs)
        self.path = path if path == ":memory:" else os.path.abspath(path)
        self.interval = interval

    @property
    def scheduler(self) -> DrainScheduler:
        return self.dispatcher  # type: ignore[return-value]

    async def _connect(self) -> DrainScheduler:
        if os.path.isdir(self.path):
            raise ValueError(f"Path points to a directory, expected file: {self.path}")

        # isolation_level=None: BEGIN/COMMIT are issued explicitly
        conn = await aiosqlite.connect(self.path, isolation_level=None)
        conn.row_factory = aiosqlite.Row

        scheduler = DrainScheduler(SQLiteSession(conn), self.interval)
        scheduler.start()
        try:
            await scheduler.write(pragma_statement("foreign_keys", True))
        except Exception:
            await scheduler.close()
            raise
        logger.info("SQLite database ready: %s", self.path)
        return scheduler

    async def get_pragma(self, option: str) -> Any:
        """Read a pragma.

        Returns the value itself for a single-row result, the list of values
        when every row carries a column named after the pragma, and the raw
        rows otherwise.
        """
        option = _pragma_name(option)
        key = option.rsplit(".", 1)[-1]
        _, rows = await self.dispatcher.read(f"PRAGMA {option}")

        if len(rows) == 1:
            return rows[0].get(key, rows[0])
        if rows and key in rows[0]:
            return [row[key] for row in rows]
        return rows

    async def set_pragma(self, option: str, value: bool | int | float | str) -> None:
        await self.dispatcher.write(pragma_statement(option, value))
