"""Unit tests for schema and data statements."""

from collections.abc import AsyncIterator

import pytest

from tableview.errors import InvalidArguments, StorageError, TableAlreadyExists, TableNotFound
from tableview.models.column import ColumnDescriptor
from tableview.models.condition import ValueCondition
from tableview.models.enums import AggregateFunction, ColumnType, ValueOperator
from tableview.models.payloads import AggregateSpec
from tableview.services import schema
from tableview.services.factory import create_async_engine_from_path
from tableview.services.lane import ExecutionLane

PEOPLE_COLUMNS = [
    ColumnDescriptor(
        name="id",
        type=ColumnType.INTEGER,
        not_null=True,
        primary_key=True,
        auto_increment=True,
    ),
    ColumnDescriptor(name="name", unique=True),
    ColumnDescriptor(name="score", type=ColumnType.REAL),
]


@pytest.fixture
async def lane() -> AsyncIterator[ExecutionLane]:
    """Create a lane with a ``people`` table."""
    lane = ExecutionLane(engine=create_async_engine_from_path(":memory:"))
    await lane.submit(lambda connection: schema.create_table(connection, "people", PEOPLE_COLUMNS))
    yield lane
    await lane.close()


async def _insert(lane: ExecutionLane, rows: list[dict]) -> int:
    return await lane.submit(lambda connection: schema.bulk_insert(connection, "people", rows))


async def _all_rows(lane: ExecutionLane) -> list[list]:
    return await lane.submit(lambda connection: schema.fetch_page(connection, "people", 0, 100))


class TestDescribeColumns:
    """Tests for reading column metadata."""

    async def test_round_trips_created_columns(self, lane: ExecutionLane) -> None:
        columns = await lane.submit(lambda connection: schema.describe_columns(connection, "people"))

        assert columns == PEOPLE_COLUMNS

    async def test_missing_table(self, lane: ExecutionLane) -> None:
        with pytest.raises(TableNotFound):
            await lane.submit(lambda connection: schema.describe_columns(connection, "missing"))


class TestTableStatements:
    """Tests for create, drop and list."""

    async def test_create_existing_table_fails(self, lane: ExecutionLane) -> None:
        with pytest.raises(TableAlreadyExists) as exc_info:
            await lane.submit(lambda connection: schema.create_table(connection, "people", PEOPLE_COLUMNS))

        assert exc_info.value.statement.startswith("CREATE TABLE people")

    async def test_create_without_columns_fails(self, lane: ExecutionLane) -> None:
        with pytest.raises(InvalidArguments):
            await lane.submit(lambda connection: schema.create_table(connection, "empty", []))

    async def test_list_excludes_internal_and_temp_tables(self, lane: ExecutionLane) -> None:
        await _insert(lane, [{"name": "a"}])
        await lane.submit(lambda connection: schema.execute(connection, "CREATE TEMP TABLE scratch (x)"))
        await lane.submit(
            lambda connection: schema.create_table(connection, "animals", [ColumnDescriptor(name="kind")])
        )

        assert await lane.submit(schema.list_tables) == ["animals", "people"]

    async def test_drop_is_idempotent(self, lane: ExecutionLane) -> None:
        await lane.submit(lambda connection: schema.drop_table(connection, "people"))
        await lane.submit(lambda connection: schema.drop_table(connection, "people"))

        assert await lane.submit(schema.list_tables) == []

    async def test_temporary_drop_leaves_base_table(self, lane: ExecutionLane) -> None:
        await lane.submit(lambda connection: schema.drop_table(connection, "people", temporary=True))

        assert await lane.submit(schema.list_tables) == ["people"]

    async def test_row_count_of_missing_table(self, lane: ExecutionLane) -> None:
        with pytest.raises(TableNotFound):
            await lane.submit(lambda connection: schema.row_count(connection, "missing"))


class TestRowStatements:
    """Tests for bulk insert, update, delete and paging."""

    async def test_insert_uses_union_of_columns(self, lane: ExecutionLane) -> None:
        inserted = await _insert(lane, [{"name": "a"}, {"score": 1.5}])

        assert inserted == 2
        assert await _all_rows(lane) == [[1, "a", None], [2, None, 1.5]]

    async def test_insert_with_explicit_columns(self, lane: ExecutionLane) -> None:
        await lane.submit(
            lambda connection: schema.bulk_insert(
                connection, "people", [{"name": "a", "score": 9.0}], columns=["name"]
            )
        )

        assert await _all_rows(lane) == [[1, "a", None]]

    async def test_insert_nothing(self, lane: ExecutionLane) -> None:
        assert await _insert(lane, []) == 0

    async def test_failed_insert_inserts_nothing(self, lane: ExecutionLane) -> None:
        with pytest.raises(StorageError):
            await _insert(lane, [{"name": "a"}, {"name": "b"}, {"name": "a"}])

        assert await _all_rows(lane) == []

    async def test_update_matching_rows(self, lane: ExecutionLane) -> None:
        await _insert(lane, [{"name": "a", "score": 1.0}, {"name": "b", "score": 2.0}])
        condition = ValueCondition(column="name", operand="b")

        updated = await lane.submit(
            lambda connection: schema.bulk_update(connection, "people", {"score": 5.0}, condition)
        )

        assert updated == 1
        assert await _all_rows(lane) == [[1, "a", 1.0], [2, "b", 5.0]]

    async def test_update_requires_assignments(self, lane: ExecutionLane) -> None:
        with pytest.raises(InvalidArguments):
            await lane.submit(lambda connection: schema.bulk_update(connection, "people", {}))

    async def test_delete_matching_rows(self, lane: ExecutionLane) -> None:
        await _insert(lane, [{"name": "ann"}, {"name": "bob"}, {"name": "joanna"}])
        condition = ValueCondition(column="name", operator=ValueOperator.LIKE, operand="ann")

        deleted = await lane.submit(lambda connection: schema.bulk_delete(connection, "people", condition))

        assert deleted == 2
        assert await _all_rows(lane) == [[2, "bob", None]]

    async def test_delete_without_condition_removes_all(self, lane: ExecutionLane) -> None:
        await _insert(lane, [{"name": "a"}, {"name": "b"}])

        assert await lane.submit(lambda connection: schema.bulk_delete(connection, "people")) == 2

    async def test_fetch_page_window(self, lane: ExecutionLane) -> None:
        await _insert(lane, [{"name": f"p{index}"} for index in range(5)])

        page = await lane.submit(lambda connection: schema.fetch_page(connection, "people", 1, 2))

        assert page == [[2, "p1", None], [3, "p2", None]]


class TestAggregate:
    """Tests for scalar aggregates."""

    async def test_values_align_with_specs(self, lane: ExecutionLane) -> None:
        await _insert(lane, [{"name": "a", "score": 1.0}, {"name": "b", "score": 2.0}, {"name": "c", "score": 3.0}])
        specs = [
            AggregateSpec(function=function, column="score")
            for function in (
                AggregateFunction.MIN,
                AggregateFunction.MAX,
                AggregateFunction.AVG,
                AggregateFunction.SUM,
                AggregateFunction.COUNT,
            )
        ]

        values = await lane.submit(lambda connection: schema.aggregate(connection, "people", specs))

        assert [value.value for value in values] == [1.0, 3.0, 2.0, 6.0, 3]
        assert [value.function for value in values] == [spec.function for spec in specs]

    async def test_empty_table_yields_nulls(self, lane: ExecutionLane) -> None:
        specs = [AggregateSpec(function=AggregateFunction.MAX, column="score")]

        values = await lane.submit(lambda connection: schema.aggregate(connection, "people", specs))

        assert values[0].value is None

    async def test_no_specs(self, lane: ExecutionLane) -> None:
        assert await lane.submit(lambda connection: schema.aggregate(connection, "people", [])) == []
