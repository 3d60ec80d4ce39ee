"""Execution scheduling for single-connection and pooled backends.

``DrainScheduler`` lets a backend with one live connection accept work from
any number of callers. Submissions only enqueue an operation and hand back a
future; a tick task owned by the scheduler drains the queues every
``interval`` seconds in a fixed order:

    transactions -> reads -> writes

Each queue is FIFO and is emptied completely before the next one. Callers
that need ordering across classes must put their statements in a single
transaction.

``PooledDispatcher`` exposes the same contract for backends with a
connection pool. Nothing is buffered there: each operation acquires its own
connection straight away.
"""

import asyncio
import contextlib
import enum
import logging
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from db_abstraction.core.errors import SchedulerClosedError
from db_abstraction.core.responses import QueryResult, Statement
from db_abstraction.transaction import Acquire, Session, execute_transaction


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 0.25


class SchedulerState(enum.Enum):
    IDLE = "idle"
    DRAINING = "draining"


class OperationKind(enum.Enum):
    TRANSACTION = "transaction"
    READ = "read"
    WRITE = "write"


DRAIN_ORDER = (OperationKind.TRANSACTION, OperationKind.READ, OperationKind.WRITE)


@dataclass(frozen=True)
class Operation:
    kind: OperationKind
    statements: tuple[Statement, ...]
    future: asyncio.Future


class QueueTarget(Session, Protocol):
    """The sole connection a DrainScheduler executes against."""

    async def read(self, query: str, params: Sequence[Any]) -> QueryResult: ...

    async def write(self, query: str, params: Sequence[Any]) -> QueryResult: ...

    async def close(self) -> None: ...


class Dispatcher(Protocol):
    async def read(self, query: str, params: Sequence[Any] = ()) -> QueryResult: ...

    async def write(self, query: str, params: Sequence[Any] = ()) -> QueryResult: ...

    async def transaction(self, statements: Iterable[Statement]) -> None: ...

    async def close(self) -> None: ...


class DrainScheduler:
    """Buffers operations for one connection and drains them on a fixed cycle."""

    def __init__(self, target: QueueTarget, interval: float = DEFAULT_INTERVAL):
        self.interval = interval
        self.state = SchedulerState.IDLE
        self._target = target
        self._queues: dict[OperationKind, deque[Operation]] = {
            kind: deque() for kind in OperationKind
        }
        self._idle = asyncio.Event()
        self._idle.set()
        self._task: asyncio.Task | None = None
        self._closing = False
        self._closed = False
        self._shutdown: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        """Number of operations waiting in all three queues."""
        return sum(len(queue) for queue in self._queues.values())

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the tick task. Must be called from a running event loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._tick())
            logger.debug("Scheduler started with %.3fs interval", self.interval)

    # --- Submission ---------------------------------------------------------

    def submit(
        self, kind: OperationKind, statements: Iterable[Statement]
    ) -> asyncio.Future:
        """Queue an operation and return its pending completion handle."""
        if self._closing:
            raise SchedulerClosedError("Scheduler is closing, no new operations accepted")
        future = asyncio.get_running_loop().create_future()
        self._queues[kind].append(Operation(kind, tuple(statements), future))
        self._idle.clear()
        return future

    def submit_read(self, query: str, params: Sequence[Any] = ()) -> asyncio.Future:
        return self.submit(OperationKind.READ, [Statement(query, tuple(params))])

    def submit_write(self, query: str, params: Sequence[Any] = ()) -> asyncio.Future:
        return self.submit(OperationKind.WRITE, [Statement(query, tuple(params))])

    def submit_transaction(self, statements: Iterable[Statement]) -> asyncio.Future:
        return self.submit(OperationKind.TRANSACTION, statements)

    async def read(self, query: str, params: Sequence[Any] = ()) -> QueryResult:
        return await self.submit_read(query, params)

    async def write(self, query: str, params: Sequence[Any] = ()) -> QueryResult:
        return await self.submit_write(query, params)

    async def transaction(self, statements: Iterable[Statement]) -> None:
        await self.submit_transaction(statements)

    # --- Draining -----------------------------------------------------------

    async def _tick(self) -> None:
        # The next sleep only starts once the drain has returned, so a slow
        # cycle delays the tick instead of overlapping with it.
        while True:
            await asyncio.sleep(self.interval)
            await self.drain()

    async def drain(self) -> int:
        """Run one drain cycle and return the number of operations executed.

        A call made while a cycle is already running returns 0 immediately.
        """
        if self.state is SchedulerState.DRAINING:
            return 0

        self.state = SchedulerState.DRAINING
        executed = 0
        try:
            for kind in DRAIN_ORDER:
                queue = self._queues[kind]
                while queue:
                    await self._execute(queue.popleft())
                    executed += 1
        finally:
            self.state = SchedulerState.IDLE
            if not self.pending:
                self._idle.set()

        if executed:
            logger.debug("Drained %d operation(s)", executed)
        return executed

    @contextlib.asynccontextmanager
    async def _acquire(self) -> AsyncIterator[Session]:
        yield self._target

    async def _execute(self, operation: Operation) -> None:
        try:
            if operation.kind is OperationKind.TRANSACTION:
                result = await execute_transaction(self._acquire, operation.statements)
            else:
                statement = operation.statements[0]
                if operation.kind is OperationKind.READ:
                    result = await self._target.read(statement.query, statement.params)
                else:
                    result = await self._target.write(statement.query, statement.params)
        except Exception as error:
            logger.debug("%s operation failed: %s", operation.kind.value, error)
            # The caller may have given up on the handle (e.g. a timeout)
            if not operation.future.done():
                operation.future.set_exception(error)
        else:
            if not operation.future.done():
                operation.future.set_result(result)

    # --- Shutdown -----------------------------------------------------------

    async def close(self) -> None:
        """Wait for every queued operation to settle, then close the connection.

        Concurrent callers all wait on the same shutdown; the connection is
        closed once.
        """
        if self._shutdown is None:
            self._closing = True
            self._shutdown = asyncio.get_running_loop().create_task(self._close())
        await self._shutdown

    async def _close(self) -> None:
        if self.pending:
            # Queues can only empty through the tick task
            self.start()
            logger.info("Waiting for %d queued operation(s) before close", self.pending)
        await self._idle.wait()

        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        await self._target.close()
        self._closed = True
        logger.debug("Scheduler stopped")


class PooledDispatcher:
    """Dispatches every operation immediately onto a pooled connection."""

    def __init__(self, acquire: Acquire, close: Callable[[], Awaitable[None]]):
        self._acquire = acquire
        self._close = close

    async def read(self, query: str, params: Sequence[Any] = ()) -> QueryResult:
        async with self._acquire() as session:
            return await session.execute(query, params)

    async def write(self, query: str, params: Sequence[Any] = ()) -> QueryResult:
        async with self._acquire() as session:
            return await session.execute(query, params)

    async def transaction(self, statements: Iterable[Statement]) -> None:
        await execute_transaction(self._acquire, statements)

    async def close(self) -> None:
        await self._close()
