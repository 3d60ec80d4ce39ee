"""Table and column descriptions consumed by the statement compiler."""

import enum
from collections.abc import Sequence
from dataclasses import dataclass

from db_abstraction.dialect import ColumnType


class FKAction(enum.Enum):
    """Referential actions allowed in ON DELETE / ON UPDATE clauses."""

    RESTRICT = "RESTRICT"
    CASCADE = "CASCADE"
    NULL = "SET NULL"
    DEFAULT = "SET DEFAULT"
    NA = "NO ACTION"


@dataclass(frozen=True)
class ForeignKey:
    table: str
    column: str
    update: FKAction | str | None = None
    delete: FKAction | str | None = None


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    type: ColumnType | str
    nullable: bool = False
    unique: bool = False
    default: str | int | float | None = None
    foreign: ForeignKey | None = None


@dataclass(frozen=True)
class TableSpec:
    name: str
    columns: tuple[ColumnSpec, ...]
    primary_key: tuple[str, ...]
    options: str | None = None

    @classmethod
    def build(
        cls,
        name: str,
        columns: Sequence[ColumnSpec],
        primary_key: Sequence[str],
        options: str | None = None,
    ) -> "TableSpec":
        return cls(name, tuple(columns), tuple(primary_key), options)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]
