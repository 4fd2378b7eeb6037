from tableview.models.column import ColumnDescriptor, TableSummary
from tableview.models.condition import CompoundCondition, Condition, SubQuery, ValueCondition, parse_condition
from tableview.models.descriptor import QueryDescriptor, SortSpec
from tableview.models.enums import (
    AggregateFunction,
    ColumnType,
    CompoundOperator,
    Rights,
    SortDirection,
    ValueOperator,
    ViewState,
)

__all__ = [
    "AggregateFunction",
    "ColumnDescriptor",
    "ColumnType",
    "CompoundCondition",
    "CompoundOperator",
    "Condition",
    "QueryDescriptor",
    "Rights",
    "SortDirection",
    "SortSpec",
    "SubQuery",
    "TableSummary",
    "ValueCondition",
    "ValueOperator",
    "ViewState",
    "parse_condition",
]
