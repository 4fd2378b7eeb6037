from typing import Any

from pydantic import field_validator

from tableview.models.base import WireModel, ensure_identifier
from tableview.models.enums import ColumnType


class ColumnDescriptor(WireModel):
    name: str
    type: ColumnType = ColumnType.TEXT
    not_null: bool = False
    primary_key: bool = False
    auto_increment: bool = False
    unique: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Any) -> str:
        return ensure_identifier(value, "column name")

    def to_ddl(self) -> str:
        """Render the column definition used inside CREATE TABLE."""
        clause = f"{self.name} {self.type.value}"
        if self.not_null:
            clause += " NOT NULL"
        if self.primary_key:
            clause += " PRIMARY KEY"
        if self.auto_increment:
            clause += " AUTOINCREMENT"
        if self.unique:
            clause += " UNIQUE"
        return clause


class TableSummary(WireModel):
    table_name: str
    columns: list[ColumnDescriptor]
    row_count: int


__all__ = ["ColumnDescriptor", "TableSummary"]
