"""Table view CLI.

Inspects a SQLite database, materializes filtered views of its tables and
invokes the remote method surface locally.
"""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional, TypeVar

import structlog
import typer
from pydantic import ValidationError

from tableview.errors import MalformedCondition, TableViewError
from tableview.models.condition import parse_condition
from tableview.models.descriptor import QueryDescriptor, SortSpec
from tableview.models.enums import SortDirection
from tableview.services.factory import create_method_registry, create_table_service
from tableview.services.table_service import TableService

T = TypeVar("T")

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    wrapper_class=structlog.BoundLogger,
    context_class=dict,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="tableview",
    help="""Browse SQLite tables through cached, materialized views.

Examples:

  # List tables with row counts
  uv run tableview tables --db ./data.db

  # Filter, sort and page a table
  uv run tableview query people --where '{"column": "name", "operator": "LIKE", "operand": "ann"}' --sort age

  # Call a remote method directly
  uv run tableview invoke pushData '{"tableName": "people", "rows": [{"name": "ann"}]}'""",
    rich_markup_mode="markdown",
)

DB_OPTION = typer.Option(
    "tableview.db",
    "--db",
    "-d",
    envvar="TABLEVIEW_DB",
    help="SQLite database file (env: TABLEVIEW_DB)",
)


def _run(db: str, action: Callable[[TableService], Awaitable[T]]) -> T:
    async def runner() -> T:
        async with create_table_service(Path(db)) as service:
            return await action(service)

    try:
        return asyncio.run(runner())
    except TableViewError as e:
        logger.error("command_failed", error=e.kind, message=e.message)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _load_json(value: str, option: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"{option} must be valid JSON: {e}")


@app.command()
def tables(db: str = DB_OPTION) -> None:
    """List tables with their row counts."""
    summaries = _run(db, lambda service: service.list_tables())
    if not summaries:
        typer.echo("No tables.")
        return
    for summary in summaries:
        typer.echo(f"{summary.table_name}\t{summary.row_count} rows\t{len(summary.columns)} columns")


@app.command()
def schema(
    table: str = typer.Argument(..., help="Table to describe"),
    db: str = DB_OPTION,
) -> None:
    """Show the columns of a table."""
    columns = _run(db, lambda service: service.get_schema(table))
    for column in columns:
        flags = [
            label
            for label, enabled in (
                ("not null", column.not_null),
                ("primary key", column.primary_key),
                ("autoincrement", column.auto_increment),
                ("unique", column.unique),
            )
            if enabled
        ]
        typer.echo(f"{column.name}\t{column.type.value}\t{', '.join(flags)}".rstrip())


@app.command()
def query(
    table: str = typer.Argument(..., help="Source table"),
    where: Optional[str] = typer.Option(
        None,
        "--where",
        "-w",
        help="Condition as JSON, e.g. '{\"column\": \"name\", \"operand\": \"ann\"}'",
    ),
    columns: Optional[list[str]] = typer.Option(
        None,
        "--column",
        "-c",
        help="Column to project (repeatable)",
    ),
    sort: Optional[str] = typer.Option(None, "--sort", "-s", help="Column to sort by"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    distinct: Optional[str] = typer.Option(
        None,
        "--distinct",
        help="Group by this column and count occurrences",
    ),
    offset: int = typer.Option(0, "--offset", help="First row to print"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of rows to print"),
    db: str = DB_OPTION,
) -> None:
    """Materialize a view of a table and print a page of it."""
    try:
        condition = parse_condition(_load_json(where, "--where")) if where else None
        descriptor = QueryDescriptor(
            source_table=table,
            projected_columns=columns or None,
            condition=condition,
            sort=SortSpec(column=sort, direction=SortDirection.DESC if desc else SortDirection.ASC) if sort else None,
            distinct_column=distinct,
        )
    except (MalformedCondition, ValidationError) as e:
        raise typer.BadParameter(str(e))

    async def action(service: TableService) -> tuple[list[str], int, list[list[Any]]]:
        info = await service.load_view(descriptor)
        rows = await service.get_page(info.guid, offset, limit)
        return [column.name for column in info.columns], info.row_count, rows

    names, row_count, rows = _run(db, action)
    typer.echo("\t".join(names))
    for row in rows:
        typer.echo("\t".join("" if value is None else str(value) for value in row))
    typer.echo(f"({len(rows)} of {row_count} rows)")


@app.command()
def invoke(
    method: str = typer.Argument(..., help="Remote method name, e.g. loadTableList"),
    args: str = typer.Argument("{}", help="Method arguments as a JSON object"),
    db: str = DB_OPTION,
) -> None:
    """Invoke one remote method and print its JSON response."""
    payload = _load_json(args, "ARGS")
    if not isinstance(payload, dict):
        raise typer.BadParameter("ARGS must be a JSON object")

    async def action(service: TableService) -> dict[str, Any]:
        return await create_method_registry(service).dispatch(method, payload)

    response = _run(db, action)
    typer.echo(json.dumps(response, indent=2, default=str))
    if "error" in response:
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from tableview import __version__

    typer.echo(f"tableview {__version__}")
