from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, NamedTuple


class QueryResult(NamedTuple):
    """Result of a single statement.

    ``count`` is the number of rows returned, changed, or the last inserted
    id, depending on the statement verb.
    """

    count: int
    rows: list[dict[str, Any]]


@dataclass(frozen=True)
class Statement:
    """A query with its positional parameters."""

    query: str
    params: tuple[Any, ...] = ()

    @classmethod
    def coerce(cls, item: "Statement | str | Sequence[Any]") -> "Statement":
        """Accept a Statement, a bare query, or a ``(query, params)`` pair."""
        if isinstance(item, Statement):
            return item
        if isinstance(item, str):
            return cls(item)
        query, params = item
        return cls(query, tuple(params or ()))


@dataclass(frozen=True)
class PreparedTable:
    """CREATE TABLE text plus the unique indexes to run after it."""

    table: str
    indexes: tuple[str, ...] = ()
