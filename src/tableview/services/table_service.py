"""Table facade: the unit remote callers talk to.

Owns one execution lane and one view cache. Reads go through the cache;
every successful write invalidates the views of the table it touched.
"""

from collections.abc import Mapping, Sequence
from types import TracebackType
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncConnection

from tableview.models.column import ColumnDescriptor, TableSummary
from tableview.models.condition import CompoundCondition, ValueCondition
from tableview.models.descriptor import QueryDescriptor
from tableview.models.payloads import AggregateSpec, AggregateValue, ViewInfo
from tableview.services import schema
from tableview.services.lane import ExecutionLane
from tableview.services.view_cache import ViewCache

ConditionNode = ValueCondition | CompoundCondition


class TableService:
    """Serves tables and cached views of one SQLite database.

    All dependencies are injected via constructor for testability. Use as an
    async context manager, or call ``close()`` to drop temp tables and release
    the connection.
    """

    def __init__(
        self,
        lane: ExecutionLane,
        view_cache: ViewCache | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._lane = lane
        self._logger = logger or structlog.get_logger(__name__)
        self._views = view_cache or ViewCache(lane, logger=self._logger)
        self._table_list: list[TableSummary] | None = None

    @property
    def views(self) -> ViewCache:
        return self._views

    async def __aenter__(self) -> "TableService":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._lane.closed:
            return
        try:
            await self._views.clear()
        finally:
            await self._lane.close()
            self._table_list = None
        self._logger.info("table_service_closed")

    # Reads

    async def list_tables(self) -> list[TableSummary]:
        """Return every base table with its columns and row count."""
        if self._table_list is None:

            async def job(connection: AsyncConnection) -> list[TableSummary]:
                return [
                    await self._summarize(connection, table)
                    for table in await schema.list_tables(connection)
                ]

            self._table_list = await self._lane.submit(job)
        return list(self._table_list)

    async def get_schema(self, table: str) -> list[ColumnDescriptor]:
        return await self._lane.submit(lambda connection: schema.describe_columns(connection, table))

    async def get_row_count(self, table: str) -> int:
        return await self._lane.submit(lambda connection: schema.row_count(connection, table))

    async def load_view(self, descriptor: QueryDescriptor) -> ViewInfo:
        """Resolve a view, materializing it on first use."""
        return await self._views.resolve(descriptor)

    async def get_view(self, guid: str) -> ViewInfo:
        """Return an existing view, rebuilding it first if stale.

        Raises:
            UnknownGuid: If the guid was never resolved or has been discarded.
        """
        return await self._views.refresh(guid)

    async def get_view_row_count(self, guid: str) -> int:
        return (await self._views.refresh(guid)).row_count

    async def get_page(self, guid: str, offset: int, limit: int) -> list[list[Any]]:
        return await self._views.page(guid, offset, limit)

    async def get_aggregate(self, guid: str, specs: Sequence[AggregateSpec]) -> list[AggregateValue]:
        return await self._views.aggregate(guid, specs)

    # Writes

    async def create_table(
        self,
        table: str,
        columns: Sequence[ColumnDescriptor],
        reset: bool = False,
    ) -> TableSummary:
        """Create a table, optionally replacing an existing one.

        Raises:
            TableAlreadyExists: If the table exists and ``reset`` is false.
        """

        async def job(connection: AsyncConnection) -> TableSummary:
            if reset:
                await schema.drop_table(connection, table)
            await schema.create_table(connection, table, columns)
            return await self._summarize(connection, table)

        summary = await self._lane.submit(job)
        if reset:
            await self._views.discard(table)
        self._after_write(table)
        self._logger.info("table_created", table=table, column_count=len(columns), reset=reset)
        return summary

    async def delete_table(self, table: str) -> None:
        await self._lane.submit(lambda connection: schema.drop_table(connection, table))
        await self._views.discard(table)
        self._after_write(table)
        self._logger.info("table_deleted", table=table)

    async def push_rows(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        columns: Sequence[str] | None = None,
    ) -> int:
        pushed = await self._lane.submit(lambda connection: schema.bulk_insert(connection, table, rows, columns))
        self._after_write(table)
        self._logger.debug("rows_pushed", table=table, row_count=pushed)
        return pushed

    async def update_rows(
        self,
        table: str,
        assignments: Mapping[str, Any],
        condition: ConditionNode | None = None,
    ) -> int:
        updated = await self._lane.submit(
            lambda connection: schema.bulk_update(connection, table, assignments, condition)
        )
        self._after_write(table)
        self._logger.debug("rows_updated", table=table, row_count=updated)
        return updated

    async def delete_rows(self, table: str, condition: ConditionNode | None = None) -> int:
        deleted = await self._lane.submit(lambda connection: schema.bulk_delete(connection, table, condition))
        self._after_write(table)
        self._logger.debug("rows_deleted", table=table, row_count=deleted)
        return deleted

    def _after_write(self, table: str) -> None:
        self._table_list = None
        self._views.invalidate(table)

    async def _summarize(self, connection: AsyncConnection, table: str) -> TableSummary:
        return TableSummary(
            table_name=table,
            columns=await schema.describe_columns(connection, table),
            row_count=await schema.row_count(connection, table),
        )
