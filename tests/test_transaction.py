"""Tests for the all-or-nothing transaction coordinator."""

import logging

import pytest

from db_abstraction import Statement
from db_abstraction.transaction import execute_transaction

from tests.fakes import CountingAcquire, FakeTarget


def statements(*queries):
    return [Statement(query) for query in queries]


class TestExecuteTransaction:
    async def test_commits_statements_in_order(self, target):
        acquire = CountingAcquire(target)

        await execute_transaction(acquire, statements("A", "B", "C"))

        assert target.calls == ["BEGIN", "A", "B", "C", "COMMIT"]
        assert (acquire.acquired, acquire.released) == (1, 1)

    async def test_failure_rolls_back_and_stops(self):
        target = FakeTarget(fail_on={"B"})
        acquire = CountingAcquire(target)

        with pytest.raises(RuntimeError, match="failed: B"):
            await execute_transaction(acquire, statements("A", "B", "C"))

        assert target.calls == ["BEGIN", "A", "B", "ROLLBACK"]
        assert acquire.released == 1

    async def test_commit_failure_rolls_back(self):
        target = FakeTarget(fail_on={"COMMIT"})
        acquire = CountingAcquire(target)

        with pytest.raises(RuntimeError, match="failed: COMMIT"):
            await execute_transaction(acquire, statements("A"))

        assert target.calls == ["BEGIN", "A", "COMMIT", "ROLLBACK"]
        assert acquire.released == 1

    async def test_rollback_failure_keeps_statement_error(self, caplog):
        target = FakeTarget(fail_on={"A", "ROLLBACK"})
        acquire = CountingAcquire(target)

        with caplog.at_level(logging.WARNING, logger="db_abstraction.transaction"):
            with pytest.raises(RuntimeError, match="failed: A"):
                await execute_transaction(acquire, statements("A"))

        assert "Rollback failed" in caplog.text
        assert acquire.released == 1

    async def test_begin_failure_still_releases(self):
        target = FakeTarget(fail_on={"BEGIN"})
        acquire = CountingAcquire(target)

        with pytest.raises(RuntimeError):
            await execute_transaction(acquire, statements("A"))

        assert "A" not in target.calls
        assert acquire.released == 1
