"""Builds portable CREATE TABLE, multi-row INSERT and UPSERT statements.

Everything here is pure text generation. Malformed input raises CompileError
before any SQL is produced.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from db_abstraction.core.errors import CompileError
from db_abstraction.core.responses import PreparedTable
from db_abstraction.dialect import Dialect, UpsertStyle
from db_abstraction.schema import ColumnSpec, FKAction, ForeignKey, TableSpec


Row = Sequence[Any] | Mapping[str, Any]


def _action(value: FKAction | str) -> str:
    """Normalize a foreign key action to its upper-cased SQL token."""
    if isinstance(value, FKAction):
        return value.value
    token = " ".join(value.split()).upper()
    if token in FKAction.__members__:
        return FKAction[token].value
    if token in {action.value for action in FKAction}:
        return token
    raise CompileError(f"Unknown foreign key action: {value!r}")


def _validate_table(spec: TableSpec) -> None:
    if not spec.name:
        raise CompileError("Table name is required")
    if not spec.columns:
        raise CompileError(f"Table {spec.name} has no columns")

    names = spec.column_names
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise CompileError(
            f"Table {spec.name} declares duplicate columns: {', '.join(duplicates)}"
        )

    if not spec.primary_key:
        raise CompileError(f"Table {spec.name} has an empty primary key")
    missing = [column for column in spec.primary_key if column not in names]
    if missing:
        raise CompileError(
            f"Primary key of {spec.name} references undeclared columns: "
            f"{', '.join(missing)}"
        )

    for column in spec.columns:
        if column.foreign and not (column.foreign.table and column.foreign.column):
            raise CompileError(
                f"Foreign key on {spec.name}.{column.name} needs a table and a column"
            )


def _column_clause(dialect: Dialect, column: ColumnSpec) -> str:
    nullability = "NULL" if column.nullable else "NOT NULL"
    clause = f"{column.name} {dialect.resolve_type(column.type)} {nullability}"
    if column.default is not None:
        clause += f" DEFAULT {column.default}"
    return clause


def _constraint_clause(table: str, column: str, foreign: ForeignKey) -> str:
    clause = (
        f"CONSTRAINT {table}_{column}_fkey FOREIGN KEY ({column}) "
        f"REFERENCES {foreign.table}({foreign.column})"
    )
    if foreign.delete:
        clause += f" ON DELETE {_action(foreign.delete)}"
    if foreign.update:
        clause += f" ON UPDATE {_action(foreign.update)}"
    return clause


def compile_create_table(dialect: Dialect, spec: TableSpec) -> PreparedTable:
    """Compile a table spec into its CREATE TABLE statement and unique indexes.

    Args:
        dialect: Dialect used to resolve logical column types
        spec: The table to create

    Returns:
        PreparedTable whose ``indexes`` must run after ``table`` succeeds

    Raises:
        CompileError: If the spec is malformed
    """
    _validate_table(spec)

    parts = [_column_clause(dialect, column) for column in spec.columns]
    parts.append(f"PRIMARY KEY ({', '.join(spec.primary_key)})")
    parts.extend(
        _constraint_clause(spec.name, column.name, column.foreign)
        for column in spec.columns
        if column.foreign
    )

    table = (
        f"CREATE TABLE IF NOT EXISTS {spec.name} ({', '.join(parts)}) "
        f"{spec.options or ''}"
    ).strip()

    indexes = tuple(
        f"CREATE UNIQUE INDEX IF NOT EXISTS {spec.name}_unique_{column.name} "
        f"ON {spec.name} ({column.name})"
        for column in spec.columns
        if column.unique
    )

    return PreparedTable(table=table, indexes=indexes)


def _row_values(columns: Sequence[str], row: Row, index: int) -> list[Any]:
    if isinstance(row, Mapping):
        missing = [column for column in columns if column not in row]
        if missing:
            raise CompileError(f"Row {index} is missing columns: {', '.join(missing)}")
        return [row[column] for column in columns]
    if len(row) != len(columns):
        raise CompileError(
            f"Row {index} has {len(row)} values but {len(columns)} columns were given"
        )
    return list(row)


def compile_multi_insert(
    dialect: Dialect,
    table: str,
    columns: Sequence[str],
    rows: Sequence[Row] | None = None,
) -> str:
    """Build one INSERT statement carrying every row as inline literals.

    Without rows the bare ``INSERT ... VALUES`` template is returned; executing
    it as-is is an error.
    """
    if not table:
        raise CompileError("Table name is required")
    if not columns:
        raise CompileError(f"No columns given for insert into {table}")

    template = f"INSERT INTO {table} ({', '.join(columns)}) VALUES"
    if not rows:
        return template

    tuples = []
    for index, row in enumerate(rows):
        values = _row_values(columns, row, index)
        tuples.append(
            "(" + ", ".join(dialect.quote_literal(value) for value in values) + ")"
        )
    return f"{template} {', '.join(tuples)}"


def compile_multi_upsert(
    dialect: Dialect,
    table: str,
    primary_key: Sequence[str],
    columns: Sequence[str],
    rows: Sequence[Row] | None = None,
) -> str:
    """Build a multi-row INSERT that updates ``columns`` when the key exists."""
    if not primary_key:
        raise CompileError(f"Upsert into {table} needs at least one key column")
    if not columns:
        raise CompileError(f"Upsert into {table} needs at least one non-key column")
    overlap = [column for column in columns if column in primary_key]
    if overlap:
        raise CompileError(
            f"Columns cannot be both key and updated: {', '.join(overlap)}"
        )

    insert = compile_multi_insert(
        dialect, table, list(primary_key) + list(columns), rows
    )

    if dialect.upsert is UpsertStyle.ON_DUPLICATE_KEY:
        updates = ", ".join(f"{column} = VALUES({column})" for column in columns)
        return f"{insert} ON DUPLICATE KEY UPDATE {updates}"

    updates = ", ".join(f"{column} = excluded.{column}" for column in columns)
    return f"{insert} ON CONFLICT ({', '.join(primary_key)}) DO UPDATE SET {updates}"
