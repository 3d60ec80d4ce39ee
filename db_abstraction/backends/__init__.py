from typing import Any

from db_abstraction.backends.mysql import MySQLDatabase
from db_abstraction.backends.postgres import PostgresDatabase
from db_abstraction.backends.sqlite import SQLiteDatabase
from db_abstraction.core.config import DatabaseConfig
from db_abstraction.core.db import Database
from db_abstraction.dialect import DBType


def create_database(config: DatabaseConfig, **kwargs: Any) -> Database:
    """Build the backend named by ``config.type`` without opening it."""
    db_type = config.db_type
    if db_type is DBType.POSTGRES:
        return PostgresDatabase(config.postgres, **kwargs)
    if db_type is DBType.MYSQL:
        return MySQLDatabase(config.mysql, **kwargs)
    return SQLiteDatabase(config.sqlite.path, interval=config.sqlite.interval, **kwargs)


async def connect(config: DatabaseConfig | None = None, **kwargs: Any) -> Database:
    """Build and open a backend. Loads the config file when none is given."""
    database = create_database(config or DatabaseConfig.load(), **kwargs)
    return await database.open()


__all__ = [
    "MySQLDatabase",
    "PostgresDatabase",
    "SQLiteDatabase",
    "connect",
    "create_database",
]
