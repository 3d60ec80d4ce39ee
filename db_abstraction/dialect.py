"""Per-backend column types, placeholder syntax and literal quoting.

Queries are written with the neutral ``?`` positional marker; each dialect
rewrites it into what its driver expects before the query is executed.
"""

import datetime
import decimal
import enum
import itertools
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg import sql
from pymysql.converters import escape_item

from db_abstraction.core.errors import ParameterCountError


class DBType(enum.Enum):
    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"


class ColumnType(enum.Enum):
    """Logical column types resolved per dialect. Any other type is a raw string."""

    HASH = "hash"
    BLOB = "blob"
    UINT32 = "uint32"
    UINT64 = "uint64"


class PlaceholderStyle(enum.Enum):
    QMARK = "qmark"  # ? left as is
    NUMBERED = "numbered"  # $1, $2, ...
    FORMAT = "format"  # %s, literal % doubled


class UpsertStyle(enum.Enum):
    ON_CONFLICT = "on_conflict"
    ON_DUPLICATE_KEY = "on_duplicate_key"


# A single-quoted literal, a marker, or a bare %. Standard SQL strings only
# escape a quote by doubling it; MySQL also treats backslash as an escape, as
# does PostgreSQL inside E'' strings.
_STANDARD_TOKEN = re.compile(r"'(?:[^']|'')*'|\?|%")
_POSTGRES_TOKEN = re.compile(
    r"(?<![\w$])[Ee]'(?:[^'\\]|\\.|'')*'|'(?:[^']|'')*'|\?|%"
)
_MYSQL_TOKEN = re.compile(r"'(?:[^'\\]|\\.|'')*'|\?|%")

_TOKENS: dict[DBType, re.Pattern] = {
    DBType.POSTGRES: _POSTGRES_TOKEN,
    DBType.MYSQL: _MYSQL_TOKEN,
    DBType.SQLITE: _STANDARD_TOKEN,
}

READ_VERBS = frozenset({"select", "with", "pragma", "explain"})


def statement_verb(query: str) -> str:
    """Return the lower-cased first keyword of a statement."""
    words = query.lstrip().split(None, 1)
    return words[0].lower() if words else ""


def is_read_statement(query: str) -> bool:
    return statement_verb(query) in READ_VERBS


def count_placeholders(query: str, db_type: DBType = DBType.SQLITE) -> int:
    """Count ``?`` markers outside the string literals of the given dialect."""
    return sum(1 for match in _TOKENS[db_type].finditer(query) if match.group(0) == "?")


def check_parameters(
    query: str, params: Sequence[Any] | None, db_type: DBType = DBType.SQLITE
) -> None:
    """Raise ParameterCountError unless every marker has exactly one parameter."""
    expected = count_placeholders(query, db_type)
    supplied = len(params or ())
    if expected != supplied:
        raise ParameterCountError(
            f"Statement has {expected} placeholder(s) but {supplied} "
            f"parameter(s) were supplied: {query}"
        )


def _postgres_literal(value: Any) -> str:
    return sql.Literal(value).as_string(None)


def _mysql_literal(value: Any) -> str:
    return escape_item(value, "utf8mb4")


def _sqlite_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, decimal.Decimal)):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"X'{bytes(value).hex()}'"
    if isinstance(value, (datetime.date, datetime.time)):
        value = str(value)
    return "'" + str(value).replace("'", "''") + "'"


_LITERALS: dict[DBType, Callable[[Any], str]] = {
    DBType.POSTGRES: _postgres_literal,
    DBType.MYSQL: _mysql_literal,
    DBType.SQLITE: _sqlite_literal,
}


@dataclass(frozen=True)
class Dialect:
    db_type: DBType
    hash_type: str
    blob_type: str
    uint32_type: str
    uint64_type: str
    placeholder: PlaceholderStyle
    upsert: UpsertStyle
    table_options: str | None = None

    def resolve_type(self, column_type: ColumnType | str) -> str:
        """Map a logical column type to this dialect's type; raw strings pass through."""
        if isinstance(column_type, ColumnType):
            return {
                ColumnType.HASH: self.hash_type,
                ColumnType.BLOB: self.blob_type,
                ColumnType.UINT32: self.uint32_type,
                ColumnType.UINT64: self.uint64_type,
            }[column_type]
        return column_type

    def transform_query(self, query: str) -> str:
        """Rewrite neutral ``?`` markers into the driver's native placeholders."""
        if self.placeholder is PlaceholderStyle.QMARK:
            return query

        counter = itertools.count(1)
        doubles_percent = self.placeholder is PlaceholderStyle.FORMAT

        def replace(match: re.Match) -> str:
            token = match.group(0)
            if token == "?":
                if self.placeholder is PlaceholderStyle.NUMBERED:
                    return f"${next(counter)}"
                return "%s"
            if doubles_percent:
                return token.replace("%", "%%")
            return token

        return _TOKENS[self.db_type].sub(replace, query)

    def quote_literal(self, value: Any) -> str:
        """Render a Python value as an inline SQL literal."""
        return _LITERALS[self.db_type](value)


DIALECTS: dict[DBType, Dialect] = {
    DBType.POSTGRES: Dialect(
        db_type=DBType.POSTGRES,
        hash_type="char(64)",
        blob_type="text",
        uint32_type="numeric(10)",
        uint64_type="numeric(20)",
        placeholder=PlaceholderStyle.NUMBERED,
        upsert=UpsertStyle.ON_CONFLICT,
    ),
    DBType.MYSQL: Dialect(
        db_type=DBType.MYSQL,
        hash_type="char(64)",
        blob_type="longtext",
        uint32_type="int(10) unsigned",
        uint64_type="bigint(20) unsigned",
        placeholder=PlaceholderStyle.FORMAT,
        upsert=UpsertStyle.ON_DUPLICATE_KEY,
        table_options="ENGINE=InnoDB PACK_KEYS=1 ROW_FORMAT=COMPRESSED",
    ),
    DBType.SQLITE: Dialect(
        db_type=DBType.SQLITE,
        hash_type="varchar(64)",
        blob_type="text",
        uint32_type="unsigned int",
        uint64_type="unsigned bigint",
        placeholder=PlaceholderStyle.QMARK,
        upsert=UpsertStyle.ON_CONFLICT,
    ),
}


def get_dialect(db_type: DBType | str) -> Dialect:
    return DIALECTS[DBType(db_type)]
