"""Argument and result models for the remote-invocable methods."""

from typing import Any, Optional

from pydantic import Field, field_validator

from tableview.models.base import WireModel, ensure_identifier, ensure_optional_identifier
from tableview.models.column import ColumnDescriptor
from tableview.models.condition import Condition
from tableview.models.descriptor import QueryDescriptor, SortSpec
from tableview.models.enums import AggregateFunction


class TableNameArgs(WireModel):
    table_name: str

    @field_validator("table_name", mode="before")
    @classmethod
    def _validate_table_name(cls, value: Any) -> str:
        return ensure_identifier(value, "table name")


class GuidArgs(WireModel):
    guid: str


class EmptyArgs(WireModel):
    pass


class ViewDescription(WireModel):
    columns: list[ColumnDescriptor]
    row_count: int = Field(ge=0)


class ViewInfo(WireModel):
    guid: str
    columns: list[ColumnDescriptor]
    row_count: int = Field(ge=0)

    def describe(self) -> ViewDescription:
        return ViewDescription(columns=self.columns, row_count=self.row_count)


class LoadTableGuidArgs(TableNameArgs):
    columns: list[str] | None = None
    condition: Optional[Condition] = None
    sort: SortSpec | None = None
    distinct: str | None = None
    desc: bool = False

    @field_validator("distinct", mode="before")
    @classmethod
    def _validate_distinct(cls, value: Any) -> str | None:
        return ensure_optional_identifier(value, "distinct column")

    def to_descriptor(self) -> QueryDescriptor:
        return QueryDescriptor(
            source_table=self.table_name,
            projected_columns=self.columns,
            condition=self.condition,
            sort=self.sort,
            distinct_column=self.distinct,
        )


class LoadTableGuidResult(WireModel):
    guid: str
    desc: ViewDescription | None = None


class LoadTableDataArgs(GuidArgs):
    from_row: int = Field(default=0, ge=0, alias="from")
    count: int = Field(default=100, ge=0)


class LoadTableDataResult(WireModel):
    rows: list[list[Any]]
    from_row: int
    rows_num: int


class CreateTableArgs(TableNameArgs):
    columns: list[ColumnDescriptor] = Field(min_length=1)
    reset: bool = False


class PushDataArgs(TableNameArgs):
    rows: list[dict[str, Any]]

    @field_validator("rows")
    @classmethod
    def _validate_row_keys(cls, value: list[dict[str, Any]]) -> list[dict[str, Any]]:
        for row in value:
            for key in row:
                ensure_identifier(key, "column name")
        return value


class PushDataResult(WireModel):
    pushed_count: int = Field(ge=0)


class UpdateDataArgs(TableNameArgs):
    assignments: dict[str, Any] = Field(min_length=1)
    condition: Optional[Condition] = None

    @field_validator("assignments")
    @classmethod
    def _validate_assignment_keys(cls, value: dict[str, Any]) -> dict[str, Any]:
        for key in value:
            ensure_identifier(key, "column name")
        return value


class DeleteDataArgs(TableNameArgs):
    condition: Optional[Condition] = None


class AggregateSpec(WireModel):
    function: AggregateFunction
    column: str

    @field_validator("column", mode="before")
    @classmethod
    def _validate_column(cls, value: Any) -> str:
        return ensure_identifier(value, "column name")


class AggregateValue(WireModel):
    column: str
    function: AggregateFunction
    value: Any = None


class LoadAggregateDataArgs(GuidArgs):
    specs: list[AggregateSpec]


__all__ = [
    "AggregateSpec",
    "AggregateValue",
    "CreateTableArgs",
    "DeleteDataArgs",
    "EmptyArgs",
    "GuidArgs",
    "LoadAggregateDataArgs",
    "LoadTableDataArgs",
    "LoadTableDataResult",
    "LoadTableGuidArgs",
    "LoadTableGuidResult",
    "PushDataArgs",
    "PushDataResult",
    "TableNameArgs",
    "UpdateDataArgs",
    "ViewDescription",
    "ViewInfo",
]
