"""Unit tests for query descriptors and cache keys."""

import json

import pytest
from pydantic import ValidationError

from tableview.models.condition import CompoundCondition, SubQuery, ValueCondition
from tableview.models.descriptor import QueryDescriptor, SortSpec
from tableview.models.enums import CompoundOperator, SortDirection


def _or(*operands) -> CompoundCondition:
    return CompoundCondition(operator=CompoundOperator.OR, operands=list(operands))


class TestQueryDescriptorValidation:
    """Tests for descriptor field validation."""

    def test_minimal_descriptor(self) -> None:
        descriptor = QueryDescriptor(source_table="people")

        assert descriptor.projected_columns is None
        assert descriptor.condition is None
        assert descriptor.sort is None
        assert descriptor.distinct_column is None

    def test_empty_projection_means_all_columns(self) -> None:
        descriptor = QueryDescriptor(source_table="people", projected_columns=[])

        assert descriptor.projected_columns is None

    def test_rejects_invalid_table_name(self) -> None:
        with pytest.raises(ValidationError):
            QueryDescriptor(source_table="people; DROP TABLE people")

    def test_rejects_invalid_projected_column(self) -> None:
        with pytest.raises(ValidationError):
            QueryDescriptor(source_table="people", projected_columns=["name", "1abc"])

    def test_condition_from_raw_mapping(self) -> None:
        descriptor = QueryDescriptor.model_validate(
            {"source_table": "people", "condition": {"column": "name", "operand": "a"}}
        )

        assert isinstance(descriptor.condition, ValueCondition)

    def test_sort_direction_is_case_insensitive(self) -> None:
        sort = SortSpec.model_validate({"column": "age", "direction": "desc"})

        assert sort.direction is SortDirection.DESC


class TestCacheKey:
    """Tests for canonical cache keys."""

    def test_key_is_canonical_json(self) -> None:
        key = QueryDescriptor(source_table="people").cache_key()

        assert json.loads(key)["sourceTable"] == "people"
        assert " " not in key

    def test_equal_descriptors_share_key(self) -> None:
        first = QueryDescriptor(source_table="people", condition=ValueCondition(column="name", operand="a"))
        second = QueryDescriptor(source_table="people", condition=ValueCondition(column="name", operand="a"))

        assert first.cache_key() == second.cache_key()

    def test_operand_order_does_not_change_key(self) -> None:
        a = ValueCondition(column="name", operand="a")
        b = ValueCondition(column="age", operand=[1, 5])

        first = QueryDescriptor(source_table="people", condition=_or(a, b))
        second = QueryDescriptor(source_table="people", condition=_or(b, a))

        assert first.cache_key() == second.cache_key()

    def test_nested_operand_order_does_not_change_key(self) -> None:
        a = ValueCondition(column="status", operand="open")
        b = ValueCondition(column="total", operand=[10, 20])

        def descriptor(*operands) -> QueryDescriptor:
            sub_query = SubQuery(table="orders", condition=_or(*operands), column="customer_id")
            return QueryDescriptor(
                source_table="people",
                condition=ValueCondition(column="id", operand=sub_query),
            )

        assert descriptor(a, b).cache_key() == descriptor(b, a).cache_key()

    def test_compound_operator_changes_key(self) -> None:
        a = ValueCondition(column="name", operand="a")
        b = ValueCondition(column="name", operand="b")

        either = QueryDescriptor(source_table="people", condition=_or(a, b))
        both = QueryDescriptor(source_table="people", condition=CompoundCondition(operands=[a, b]))

        assert either.cache_key() != both.cache_key()

    @pytest.mark.parametrize(
        "other",
        [
            QueryDescriptor(source_table="people", projected_columns=["name"]),
            QueryDescriptor(source_table="people", sort=SortSpec(column="name")),
            QueryDescriptor(source_table="people", distinct_column="name"),
            QueryDescriptor(source_table="pets"),
        ],
    )
    def test_distinct_fields_change_key(self, other: QueryDescriptor) -> None:
        assert QueryDescriptor(source_table="people").cache_key() != other.cache_key()

    def test_canonical_does_not_mutate_original(self) -> None:
        a = ValueCondition(column="name", operand="a")
        b = ValueCondition(column="age", operand=1)
        descriptor = QueryDescriptor(source_table="people", condition=_or(b, a))

        descriptor.canonical()

        assert descriptor.condition.operands == [b, a]
