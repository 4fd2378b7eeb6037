"""Materialized-view cache keyed by canonical query descriptors.

Each distinct descriptor is materialized once into a temporary table and
served from it until a mutation of a referenced table marks it stale. Stale
entries are rebuilt lazily by the next read. Concurrent readers of one entry
share a single in-flight build and observe the same outcome.

Entry lifecycle::

    UNBUILT -> BUILDING -> FRESH -> STALE -> BUILDING -> FRESH -> ...

Entries are removed when their source table is deleted or the cache is
cleared on teardown. An entry whose first build fails is forgotten.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncConnection

from tableview.errors import UnknownGuid
from tableview.models.column import ColumnDescriptor
from tableview.models.descriptor import QueryDescriptor
from tableview.models.enums import ColumnType, ViewState
from tableview.models.payloads import AggregateSpec, AggregateValue, ViewInfo
from tableview.services import schema
from tableview.services.condition_compiler import compile_where, referenced_tables
from tableview.services.lane import ExecutionLane

DISTINCT_COUNT_COLUMN = "count"


@dataclass
class ViewCacheEntry:
    """Cache bookkeeping for one materialized view.

    ``columns`` and ``row_count`` always hold the last successful build;
    a failed build leaves them untouched and the entry stale.
    """

    key: str
    descriptor: QueryDescriptor
    referenced: frozenset[str]
    backing_table: str | None = None
    columns: list[ColumnDescriptor] | None = None
    row_count: int = 0
    stale: bool = True
    build: asyncio.Task[ViewInfo] | None = field(default=None, repr=False)

    @property
    def state(self) -> ViewState:
        if self.build is not None:
            return ViewState.BUILDING
        if self.columns is None:
            return ViewState.UNBUILT
        return ViewState.STALE if self.stale else ViewState.FRESH

    def info(self) -> ViewInfo:
        return ViewInfo(guid=self.key, columns=self.columns or [], row_count=self.row_count)


def compose_view_statement(backing_table: str, descriptor: QueryDescriptor) -> str:
    """Build the CREATE TEMP TABLE ... AS SELECT statement for a descriptor."""
    distinct = descriptor.distinct_column
    if distinct:
        projection = f"{distinct}, COUNT({distinct}) AS {DISTINCT_COUNT_COLUMN}"
    elif descriptor.projected_columns:
        projection = ", ".join(descriptor.projected_columns)
    else:
        projection = "*"

    parts = [f"CREATE TEMP TABLE {backing_table} AS SELECT {projection} FROM {descriptor.source_table}"]
    where = compile_where(descriptor.condition)
    if where:
        parts.append(where)
    if distinct:
        parts.append(f"GROUP BY {distinct}")
    if descriptor.sort is not None:
        parts.append(f"ORDER BY {descriptor.sort.column} {descriptor.sort.direction.value}")
    return " ".join(parts)


class ViewCache:
    """Maps query descriptors to lazily built temporary tables.

    All SQL runs through the owning facade's ``ExecutionLane``. The temp
    table counter is only advanced inside lane jobs, so two builds can never
    claim the same name.
    """

    TEMP_TABLE_PREFIX = "tmp_view_"

    def __init__(
        self,
        lane: ExecutionLane,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._lane = lane
        self._logger = logger or structlog.get_logger(__name__)
        self._entries: dict[str, ViewCacheEntry] = {}
        self._counter = 0
        self.build_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get_entry(self, key: str) -> ViewCacheEntry:
        """Return the entry for ``key``.

        Raises:
            UnknownGuid: If no entry exists for the key.
        """
        entry = self._entries.get(key)
        if entry is None:
            raise UnknownGuid(key)
        return entry

    async def resolve(self, descriptor: QueryDescriptor) -> ViewInfo:
        """Return the view for ``descriptor``, building it if needed."""
        canonical = descriptor.canonical()
        key = canonical.cache_key()
        entry = self._entries.get(key)
        if entry is None:
            # Raises MalformedCondition before anything is registered.
            compile_where(canonical.condition)
            entry = ViewCacheEntry(
                key=key,
                descriptor=canonical,
                referenced=frozenset({canonical.source_table} | referenced_tables(canonical.condition)),
            )
            self._entries[key] = entry
            self._logger.debug("view_registered", source_table=canonical.source_table, view_count=len(self))
        return await self._ensure_fresh(entry)

    async def refresh(self, key: str) -> ViewInfo:
        """Return the view for an existing key, rebuilding it if stale."""
        return await self._ensure_fresh(self.get_entry(key))

    async def page(self, key: str, offset: int, limit: int) -> list[list[Any]]:
        entry = self.get_entry(key)
        await self._ensure_fresh(entry)
        table = entry.backing_table

        async def job(connection: AsyncConnection) -> list[list[Any]]:
            return await schema.fetch_page(connection, table, offset, limit)

        return await self._lane.submit(job)

    async def aggregate(self, key: str, specs: Sequence[AggregateSpec]) -> list[AggregateValue]:
        entry = self.get_entry(key)
        await self._ensure_fresh(entry)
        table = entry.backing_table

        async def job(connection: AsyncConnection) -> list[AggregateValue]:
            return await schema.aggregate(connection, table, specs)

        return await self._lane.submit(job)

    def invalidate(self, table: str) -> int:
        """Mark every fresh view that reads ``table`` as stale.

        Temp tables are kept; the next read rebuilds them.

        Returns:
            Number of entries newly marked stale.
        """
        marked = 0
        for entry in self._entries.values():
            if entry.stale or table not in entry.referenced:
                continue
            entry.stale = True
            marked += 1
        if marked:
            self._logger.debug("views_invalidated", table=table, view_count=marked)
        return marked

    async def discard(self, table: str) -> int:
        """Drop and forget every view whose source is ``table``."""
        keys = [key for key, entry in self._entries.items() if entry.descriptor.source_table == table]
        return await self._drop_entries(keys)

    async def clear(self) -> int:
        """Drop every temp table and empty the cache."""
        return await self._drop_entries(list(self._entries))

    async def _drop_entries(self, keys: list[str]) -> int:
        entries = [self._entries.pop(key) for key in keys]
        builds = [entry.build for entry in entries if entry.build is not None]
        if builds:
            # In-flight builds finish before their temp tables are dropped.
            await asyncio.wait(builds)

        backing_tables = [entry.backing_table for entry in entries if entry.backing_table]
        if backing_tables:

            async def job(connection: AsyncConnection) -> None:
                for backing_table in backing_tables:
                    await schema.drop_table(connection, backing_table, temporary=True)

            await self._lane.submit(job)

        if entries:
            self._logger.debug("views_discarded", view_count=len(entries))
        return len(entries)

    async def _ensure_fresh(self, entry: ViewCacheEntry) -> ViewInfo:
        if entry.build is None:
            if not entry.stale:
                return entry.info()
            entry.build = asyncio.create_task(self._build(entry))
        return await asyncio.shield(entry.build)

    async def _build(self, entry: ViewCacheEntry) -> ViewInfo:
        self.build_count += 1
        self._logger.debug(
            "view_build_started",
            source_table=entry.descriptor.source_table,
            backing_table=entry.backing_table,
        )
        try:
            info = await self._lane.submit(lambda connection: self._materialize(connection, entry))
        except Exception as e:
            self._logger.warning(
                "view_build_failed",
                source_table=entry.descriptor.source_table,
                backing_table=entry.backing_table,
                error=str(e),
            )
            if entry.columns is None and self._entries.get(entry.key) is entry:
                del self._entries[entry.key]
            raise
        finally:
            entry.build = None

        self._logger.debug(
            "view_build_completed",
            source_table=entry.descriptor.source_table,
            backing_table=entry.backing_table,
            row_count=info.row_count,
        )
        return info

    async def _materialize(self, connection: AsyncConnection, entry: ViewCacheEntry) -> ViewInfo:
        first_build = entry.backing_table is None
        backing_table = entry.backing_table or f"{self.TEMP_TABLE_PREFIX}{self._counter + 1}"
        descriptor = entry.descriptor
        await schema.drop_table(connection, backing_table, temporary=True)
        await schema.execute(connection, compose_view_statement(backing_table, descriptor))

        if descriptor.distinct_column:
            columns = await self._distinct_columns(connection, descriptor)
        else:
            columns = await schema.describe_columns(connection, backing_table)
        row_count = await schema.row_count(connection, backing_table)

        if first_build:
            self._counter += 1
            entry.backing_table = backing_table

        # Writes queued behind this job invalidate after these assignments.
        entry.columns = columns
        entry.row_count = row_count
        entry.stale = False
        return entry.info()

    async def _distinct_columns(
        self,
        connection: AsyncConnection,
        descriptor: QueryDescriptor,
    ) -> list[ColumnDescriptor]:
        distinct = descriptor.distinct_column
        source_columns = await schema.describe_columns(connection, descriptor.source_table)
        source_type = next(
            (column.type for column in source_columns if column.name == distinct),
            ColumnType.BLOB,
        )
        return [
            ColumnDescriptor(name=distinct, type=source_type),
            ColumnDescriptor(name=DISTINCT_COUNT_COLUMN, type=ColumnType.INTEGER),
        ]
