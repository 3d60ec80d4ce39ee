import contextlib
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import psycopg
import psycopg.rows
import psycopg_pool

from db_abstraction.core.config import PostgresConfig
from db_abstraction.core.db import Database
from db_abstraction.core.errors import NotConnectedError
from db_abstraction.core.responses import QueryResult
from db_abstraction.dialect import DBType
from db_abstraction.scheduler import PooledDispatcher


logger = logging.getLogger(__name__)


class PostgresSession:
    """One pooled connection. Queries arrive already rewritten to $n markers."""

    def __init__(self, conn: psycopg.AsyncConnection):
        self._conn = conn

    async def begin(self) -> None:
        await self._conn.execute("BEGIN")

    async def commit(self) -> None:
        await self._conn.execute("COMMIT")

    async def rollback(self) -> None:
        await self._conn.execute("ROLLBACK")

    async def execute(self, query: str, params: Sequence[Any]) -> QueryResult:
        async with self._conn.cursor(row_factory=psycopg.rows.dict_row) as cur:
            await cur.execute(query, tuple(params) or None)
            rows = await cur.fetchall() if cur.description else []
            return QueryResult(max(cur.rowcount, 0), [dict(row) for row in rows])


class PostgresDatabase(Database):
    db_type = DBType.POSTGRES

    def __init__(self, config: PostgresConfig | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.config = config or PostgresConfig()
        self.pool: psycopg_pool.AsyncConnectionPool | None = None

    async def _connect(self) -> PooledDispatcher:
        """Initialize the async connection pool."""
        # Transactions are issued explicitly, and the raw cursor takes the
        # server's native $n placeholders.
        self.pool = psycopg_pool.AsyncConnectionPool(
            conninfo=self.config.conninfo,
            min_size=self.config.min_size,
            max_size=self.config.max_size,
            kwargs={"autocommit": True, "cursor_factory": psycopg.AsyncRawCursor},
            open=False,
        )
        await self.pool.open()
        await self.pool.wait()
        logger.info("Postgres pool ready: %s/%s", self.config.host, self.config.name)
        return PooledDispatcher(self.connection, self._close_pool)

    async def _close_pool(self) -> None:
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None

    @contextlib.asynccontextmanager
    async def connection(self) -> AsyncIterator[PostgresSession]:
        """Get a connection from the pool."""
        if not self.pool:
            raise NotConnectedError("Database pool not initialized")
        async with self.pool.connection() as conn:
            yield PostgresSession(conn)
