"""Shared pytest fixtures for all tests."""

import pytest

from db_abstraction import SQLiteDatabase

from tests.fakes import FakeTarget


@pytest.fixture
def target() -> FakeTarget:
    return FakeTarget()


@pytest.fixture
async def sqlite_db(tmp_path):
    """Open a file-backed SQLite database with a fast drain cycle."""
    db = SQLiteDatabase(str(tmp_path / "test.db"), interval=0.01)
    await db.open()
    yield db
    await db.close()
