import logging
from collections.abc import Callable, Iterable, Sequence
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from db_abstraction.core.responses import QueryResult, Statement


logger = logging.getLogger(__name__)


class Session(Protocol):
    """A single driver connection able to run an explicit transaction."""

    async def begin(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def execute(self, query: str, params: Sequence[Any]) -> QueryResult: ...


Acquire = Callable[[], AbstractAsyncContextManager[Session]]


async def execute_transaction(acquire: Acquire, statements: Iterable[Statement]) -> None:
    """Run statements on one acquired connection, all or nothing.

    The connection is held for the whole transaction and released exactly
    once by the ``acquire`` context manager, whichever way this exits.

    Args:
        acquire: Factory returning an async context manager over a Session
        statements: Statements in execution order, already in native syntax

    Raises:
        Whatever the driver raised for the first failing statement or the
        COMMIT. The transaction has been rolled back by then.
    """
    async with acquire() as session:
        await session.begin()
        try:
            for statement in statements:
                await session.execute(statement.query, statement.params)
            await session.commit()
        except Exception:
            try:
                await session.rollback()
            except Exception:
                logger.warning("Rollback failed", exc_info=True)
            raise
