"""Capability contract shared by every backend.

Subclasses only know how to open their driver and hand back a dispatcher;
compilation, placeholder rewriting and result shaping live here.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from db_abstraction.compiler import (
    Row,
    compile_create_table,
    compile_multi_insert,
    compile_multi_upsert,
)
from db_abstraction.core.errors import NotConnectedError
from db_abstraction.core.responses import PreparedTable, QueryResult, Statement
from db_abstraction.dialect import DBType, check_parameters, get_dialect, is_read_statement
from db_abstraction.scheduler import Dispatcher
from db_abstraction.schema import ColumnSpec, TableSpec


logger = logging.getLogger(__name__)


class Database:
    db_type: DBType

    def __init__(
        self,
        *,
        on_ready: Callable[[], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ):
        self.dialect = get_dialect(self.db_type)
        self._table_options = self.dialect.table_options
        self._on_ready = on_ready
        self._on_error = on_error
        self._dispatcher: Dispatcher | None = None
        self._closing: asyncio.Task | None = None

    # --- Type mapping -------------------------------------------------------

    @property
    def hash_type(self) -> str:
        return self.dialect.hash_type

    @property
    def blob_type(self) -> str:
        return self.dialect.blob_type

    @property
    def uint32_type(self) -> str:
        return self.dialect.uint32_type

    @property
    def uint64_type(self) -> str:
        return self.dialect.uint64_type

    @property
    def table_options(self) -> str | None:
        """Trailing DDL fragment (engine, compression) applied to new tables."""
        return self._table_options

    @table_options.setter
    def table_options(self, value: str | None) -> None:
        self._table_options = value

    # --- Lifecycle ----------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._dispatcher is not None

    @property
    def dispatcher(self) -> Dispatcher:
        if self._dispatcher is None:
            raise NotConnectedError(f"{self.db_type.value} database is not open")
        return self._dispatcher

    async def _connect(self) -> Dispatcher:
        raise NotImplementedError

    async def open(self) -> "Database":
        if self._dispatcher is None:
            self._dispatcher = await self._connect()
            logger.info("%s database opened", self.db_type.value)
            if self._on_ready:
                self._on_ready()
        return self

    async def close(self) -> None:
        """Release every connection. Already queued work is finished first."""
        if self._closing is None:
            if self._dispatcher is None:
                return
            self._closing = asyncio.get_running_loop().create_task(self._close())
        await self._closing

    async def _close(self) -> None:
        try:
            await self.dispatcher.close()
        finally:
            self._dispatcher = None
            self._closing = None
        logger.info("%s database closed", self.db_type.value)

    async def __aenter__(self) -> "Database":
        return await self.open()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _report_error(self, error: Exception) -> None:
        if self._on_error:
            self._on_error(error)
        else:
            logger.error("Unreported %s error", self.db_type.value, exc_info=error)

    # --- Execution ----------------------------------------------------------

    def _native(self, statement: Statement) -> Statement:
        check_parameters(statement.query, statement.params, self.db_type)
        return Statement(self.dialect.transform_query(statement.query), statement.params)

    async def query(self, query: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Execute one statement written with ``?`` placeholders.

        Returns:
            QueryResult of (count, rows)

        Raises:
            ParameterCountError: If placeholders and params disagree
            NotConnectedError: If the database is not open
        """
        statement = self._native(Statement(query, tuple(params or ())))
        if is_read_statement(query):
            return await self.dispatcher.read(statement.query, statement.params)
        return await self.dispatcher.write(statement.query, statement.params)

    async def transaction(
        self, statements: Iterable[Statement | str | Sequence[Any]]
    ) -> None:
        """Execute statements atomically: all are committed or none are."""
        prepared = [self._native(Statement.coerce(item)) for item in statements]
        await self.dispatcher.transaction(prepared)

    # --- Schema -------------------------------------------------------------

    def prepare_create_table(
        self,
        name: str,
        columns: Sequence[ColumnSpec],
        primary_key: Sequence[str],
        table_options: str | None = None,
    ) -> PreparedTable:
        options = table_options if table_options is not None else self.table_options
        spec = TableSpec.build(name, columns, primary_key, options)
        return compile_create_table(self.dialect, spec)

    async def create_table(
        self,
        name: str,
        columns: Sequence[ColumnSpec],
        primary_key: Sequence[str],
        table_options: str | None = None,
        *,
        strict: bool = False,
    ) -> None:
        """Create a table, then its unique indexes, as two transactions.

        Failures are passed to ``on_error`` (or logged) rather than raised,
        unless ``strict`` is set.
        """
        try:
            prepared = self.prepare_create_table(name, columns, primary_key, table_options)
            await self.transaction([prepared.table])
            if prepared.indexes:
                await self.transaction(prepared.indexes)
        except Exception as error:
            if strict:
                raise
            self._report_error(error)

    def prepare_multi_insert(
        self,
        table: str,
        columns: Sequence[str],
        rows: Sequence[Row] | None = None,
    ) -> str:
        return compile_multi_insert(self.dialect, table, columns, rows)

    def prepare_multi_update(
        self,
        table: str,
        primary_key: Sequence[str],
        columns: Sequence[str],
        rows: Sequence[Row] | None = None,
    ) -> str:
        return compile_multi_upsert(self.dialect, table, primary_key, columns, rows)
