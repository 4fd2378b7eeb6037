"""Schema and data statements executed on an open connection.

These helpers hold no state of their own. They run inside jobs submitted to
an ``ExecutionLane`` so that multi-statement work (for example building a
view) executes without interleaving with other callers.
"""

from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection

from tableview.errors import InvalidArguments, StorageError, TableAlreadyExists, TableNotFound
from tableview.models.column import ColumnDescriptor
from tableview.models.condition import CompoundCondition, ValueCondition
from tableview.models.enums import ColumnType
from tableview.models.payloads import AggregateSpec, AggregateValue
from tableview.services.condition_compiler import compile_where

logger = structlog.get_logger(__name__)

ConditionNode = ValueCondition | CompoundCondition


async def execute(
    connection: AsyncConnection,
    statement: str,
    parameters: Sequence[Any] | Sequence[Sequence[Any]] | None = None,
) -> CursorResult[Any]:
    """Execute raw SQL, translating driver errors into ``StorageError``.

    Args:
        connection: Open connection owned by the execution lane.
        statement: SQL text, using ``?`` placeholders for parameters.
        parameters: A tuple for one execution or a list of tuples for many.

    Raises:
        TableNotFound: If the engine reports a missing table.
        TableAlreadyExists: If the engine reports an existing table.
        StorageError: For any other engine failure.
    """
    try:
        if parameters is None:
            return await connection.exec_driver_sql(statement)
        return await connection.exec_driver_sql(statement, parameters)
    except DBAPIError as e:
        message = str(e.orig) if e.orig is not None else str(e)
        logger.warning("statement_failed", statement=statement, error=message)
        lowered = message.lower()
        if "no such table" in lowered:
            raise TableNotFound(message, statement=statement) from e
        if "already exists" in lowered:
            raise TableAlreadyExists(message, statement=statement) from e
        raise StorageError(message, statement=statement) from e


async def list_tables(connection: AsyncConnection) -> list[str]:
    result = await execute(
        connection,
        "SELECT name FROM sqlite_master WHERE type = 'table' "
        "AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\' ORDER BY name",
    )
    return [row[0] for row in result.fetchall()]


async def describe_columns(connection: AsyncConnection, table: str) -> list[ColumnDescriptor]:
    """Return the ordered column descriptors of a table or temp table.

    Raises:
        TableNotFound: If the table does not exist.
    """
    statement = f"PRAGMA table_info({table})"
    info = (await execute(connection, statement)).mappings().all()
    if not info:
        raise TableNotFound(f"no such table: {table}", statement=statement)

    unique_columns = await _unique_columns(connection, table)
    create_sql = await _create_statement(connection, table)
    has_autoincrement = "AUTOINCREMENT" in create_sql.upper()

    return [
        ColumnDescriptor(
            name=row["name"],
            type=ColumnType.from_declared(row["type"]),
            not_null=bool(row["notnull"]),
            primary_key=bool(row["pk"]),
            auto_increment=bool(row["pk"]) and has_autoincrement,
            unique=row["name"] in unique_columns,
        )
        for row in info
    ]


async def row_count(connection: AsyncConnection, table: str) -> int:
    result = await execute(connection, f"SELECT COUNT(*) AS count FROM {table}")
    return int(result.scalar_one())


async def create_table(
    connection: AsyncConnection,
    table: str,
    columns: Sequence[ColumnDescriptor],
) -> None:
    if not columns:
        raise InvalidArguments(f"Table {table} needs at least one column", table=table)
    definitions = ", ".join(column.to_ddl() for column in columns)
    await execute(connection, f"CREATE TABLE {table} ({definitions})")


async def drop_table(connection: AsyncConnection, table: str, temporary: bool = False) -> None:
    """Drop a table if it exists.

    With ``temporary`` the name is resolved in the temp schema only, so a
    base table of the same name is never touched.
    """
    qualified = f"temp.{table}" if temporary else table
    await execute(connection, f"DROP TABLE IF EXISTS {qualified}")


async def bulk_insert(
    connection: AsyncConnection,
    table: str,
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[str] | None = None,
) -> int:
    """Insert rows given as column-to-value mappings.

    Without an explicit column list the union of keys across all rows is
    used, in first-seen order. Rows missing a column insert NULL for it.

    Returns:
        Number of rows inserted.
    """
    if not rows:
        return 0

    column_names = list(columns) if columns else list(dict.fromkeys(key for row in rows for key in row))
    if not column_names:
        raise InvalidArguments(f"Rows pushed to {table} have no columns", table=table)

    placeholders = ", ".join("?" for _ in column_names)
    statement = f"INSERT INTO {table} ({', '.join(column_names)}) VALUES ({placeholders})"
    parameters = [tuple(row.get(name) for name in column_names) for row in rows]
    await execute(connection, statement, parameters)
    return len(rows)


async def bulk_update(
    connection: AsyncConnection,
    table: str,
    assignments: Mapping[str, Any],
    condition: ConditionNode | None = None,
) -> int:
    """Apply ``assignments`` to rows matching ``condition``; returns affected rows."""
    if not assignments:
        raise InvalidArguments(f"Update of {table} needs at least one assignment", table=table)

    set_clause = ", ".join(f"{column} = ?" for column in assignments)
    statement = f"UPDATE {table} SET {set_clause} {compile_where(condition)}".rstrip()
    result = await execute(connection, statement, tuple(assignments.values()))
    return max(result.rowcount, 0)


async def bulk_delete(
    connection: AsyncConnection,
    table: str,
    condition: ConditionNode | None = None,
) -> int:
    statement = f"DELETE FROM {table} {compile_where(condition)}".rstrip()
    result = await execute(connection, statement)
    return max(result.rowcount, 0)


async def aggregate(
    connection: AsyncConnection,
    table: str,
    specs: Sequence[AggregateSpec],
) -> list[AggregateValue]:
    """Compute scalar aggregates in one query, aligned to ``specs`` by position."""
    if not specs:
        return []

    projection = ", ".join(
        f"{spec.function.value}({spec.column}) AS col{index}" for index, spec in enumerate(specs)
    )
    result = await execute(connection, f"SELECT {projection} FROM {table}")
    row = result.mappings().one()
    return [
        AggregateValue(column=spec.column, function=spec.function, value=row[f"col{index}"])
        for index, spec in enumerate(specs)
    ]


async def fetch_page(
    connection: AsyncConnection,
    table: str,
    offset: int,
    limit: int,
) -> list[list[Any]]:
    """Read a window of rows in insertion order as ordered value lists."""
    result = await execute(
        connection,
        f"SELECT * FROM {table} ORDER BY rowid LIMIT ? OFFSET ?",
        (limit, offset),
    )
    return [list(row) for row in result.fetchall()]


async def _unique_columns(connection: AsyncConnection, table: str) -> set[str]:
    indexes = (await execute(connection, f"PRAGMA index_list({table})")).mappings().all()
    columns: set[str] = set()
    for index in indexes:
        if not index["unique"] or index["origin"] == "pk":
            continue
        members = (await execute(connection, f'PRAGMA index_info("{index["name"]}")')).mappings().all()
        if len(members) == 1:
            columns.add(members[0]["name"])
    return columns


async def _create_statement(connection: AsyncConnection, table: str) -> str:
    result = await execute(
        connection,
        "SELECT sql FROM sqlite_temp_master WHERE type = 'table' AND name = ? "
        "UNION ALL SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?",
        (table, table),
    )
    row = result.first()
    if row is None or row[0] is None:
        return ""
    return row[0]
