"""A database abstraction layer over PostgreSQL, MySQL and SQLite."""

from db_abstraction.backends import (
    MySQLDatabase,
    PostgresDatabase,
    SQLiteDatabase,
    connect,
    create_database,
)
from db_abstraction.core.config import DatabaseConfig, MySQLConfig, PostgresConfig, SQLiteConfig
from db_abstraction.core.db import Database
from db_abstraction.core.errors import (
    CompileError,
    DatabaseError,
    NotConnectedError,
    ParameterCountError,
    SchedulerClosedError,
)
from db_abstraction.core.responses import PreparedTable, QueryResult, Statement
from db_abstraction.dialect import ColumnType, DBType, Dialect, get_dialect
from db_abstraction.schema import ColumnSpec, FKAction, ForeignKey, TableSpec

__version__ = "1.0.5"

__all__ = [
    "ColumnSpec",
    "ColumnType",
    "CompileError",
    "Database",
    "DatabaseConfig",
    "DatabaseError",
    "DBType",
    "Dialect",
    "FKAction",
    "ForeignKey",
    "MySQLConfig",
    "MySQLDatabase",
    "NotConnectedError",
    "ParameterCountError",
    "PostgresConfig",
    "PostgresDatabase",
    "PreparedTable",
    "QueryResult",
    "SQLiteConfig",
    "SQLiteDatabase",
    "SchedulerClosedError",
    "Statement",
    "TableSpec",
    "connect",
    "create_database",
    "get_dialect",
]
