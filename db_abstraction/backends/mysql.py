import contextlib
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import aiomysql

from db_abstraction.core.config import MySQLConfig
from db_abstraction.core.db import Database
from db_abstraction.core.errors import NotConnectedError
from db_abstraction.core.responses import QueryResult
from db_abstraction.dialect import DBType, statement_verb
from db_abstraction.scheduler import PooledDispatcher


logger = logging.getLogger(__name__)


class MySQLSession:
    """One pooled connection. Queries arrive already rewritten to %s markers."""

    def __init__(self, conn: aiomysql.Connection):
        self._conn = conn

    async def begin(self) -> None:
        await self._conn.begin()

    async def commit(self) -> None:
        await self._conn.commit()

    async def rollback(self) -> None:
        await self._conn.rollback()

    async def execute(self, query: str, params: Sequence[Any]) -> QueryResult:
        async with self._conn.cursor(aiomysql.DictCursor) as cur:
            # Always pass a tuple so that doubled %% collapse back to %
            await cur.execute(query, tuple(params))
            if cur.description:
                rows = list(await cur.fetchall())
                return QueryResult(len(rows), rows)
            if statement_verb(query) == "insert":
                return QueryResult(cur.lastrowid or cur.rowcount, [])
            return QueryResult(max(cur.rowcount, 0), [])


class MySQLDatabase(Database):
    db_type = DBType.MYSQL

    def __init__(self, config: MySQLConfig | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.config = config or MySQLConfig()
        self.pool: aiomysql.Pool | None = None

    async def _connect(self) -> PooledDispatcher:
        self.pool = await aiomysql.create_pool(
            host=self.config.host,
            port=self.config.port,
            user=self.config.user,
            password=self.config.password,
            db=self.config.name,
            minsize=1,
            maxsize=self.config.connection_limit,
            autocommit=True,
        )
        logger.info("MySQL pool ready: %s/%s", self.config.host, self.config.name)
        return PooledDispatcher(self.connection, self._close_pool)

    async def _close_pool(self) -> None:
        if self.pool:
            self.pool.close()
            await self.pool.wait_closed()
            self.pool = None

    @contextlib.asynccontextmanager
    async def connection(self) -> AsyncIterator[MySQLSession]:
        """Get a connection from the pool."""
        if not self.pool:
            raise NotConnectedError("Database pool not initialized")
        async with self.pool.acquire() as conn:
            yield MySQLSession(conn)
