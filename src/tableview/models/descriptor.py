import json
from typing import Any, Optional

from pydantic import field_validator

from tableview.models.base import WireModel, ensure_identifier, ensure_optional_identifier
from tableview.models.condition import CompoundCondition, Condition, SubQuery, ValueCondition
from tableview.models.enums import SortDirection


class SortSpec(WireModel):
    column: str
    direction: SortDirection = SortDirection.ASC

    @field_validator("column", mode="before")
    @classmethod
    def _validate_column(cls, value: Any) -> str:
        return ensure_identifier(value, "sort column")


class QueryDescriptor(WireModel):
    """A filtered, sorted, projected or grouped view of one table.

    Two descriptors share a cache entry when their ``cache_key()`` values
    are equal. AND/OR operand order does not affect the key.
    """

    source_table: str
    projected_columns: list[str] | None = None
    condition: Optional[Condition] = None
    sort: SortSpec | None = None
    distinct_column: str | None = None

    @field_validator("source_table", mode="before")
    @classmethod
    def _validate_source_table(cls, value: Any) -> str:
        return ensure_identifier(value, "table name")

    @field_validator("projected_columns", mode="before")
    @classmethod
    def _validate_projected_columns(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        columns = [ensure_identifier(item, "column name") for item in value]
        return columns or None

    @field_validator("distinct_column", mode="before")
    @classmethod
    def _validate_distinct_column(cls, value: Any) -> str | None:
        return ensure_optional_identifier(value, "distinct column")

    def canonical(self) -> "QueryDescriptor":
        """Return an equivalent descriptor with commutative operands ordered."""
        if self.condition is None:
            return self
        return self.model_copy(update={"condition": canonicalize_condition(self.condition)})

    def cache_key(self) -> str:
        return _dumps(self.canonical().model_dump(mode="json", by_alias=True))


def canonicalize_condition(
    condition: ValueCondition | CompoundCondition,
) -> ValueCondition | CompoundCondition:
    if isinstance(condition, CompoundCondition):
        operands = [canonicalize_condition(operand) for operand in condition.operands]
        operands.sort(key=_condition_sort_key)
        return condition.model_copy(update={"operands": operands})

    if isinstance(condition.operand, SubQuery):
        nested = canonicalize_condition(condition.operand.condition)
        operand = condition.operand.model_copy(update={"condition": nested})
        return condition.model_copy(update={"operand": operand})
    return condition


def _condition_sort_key(condition: ValueCondition | CompoundCondition) -> str:
    return _dumps(condition.model_dump(mode="json", by_alias=True))


def _dumps(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


__all__ = ["QueryDescriptor", "SortSpec", "canonicalize_condition"]
