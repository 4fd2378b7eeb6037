"""Filter expressions as an explicit tagged union.

A condition is either a ``ValueCondition`` (one column compared against an
operand) or a ``CompoundCondition`` (AND/OR over nested conditions). Payloads
that arrive without a ``kind`` tag are tagged once at the boundary; after
validation every node carries its variant explicitly.
"""

from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, Discriminator, Field, Tag, TypeAdapter, ValidationError, field_validator

from tableview.errors import MalformedCondition
from tableview.models.base import WireModel, ensure_identifier, ensure_optional_identifier
from tableview.models.enums import CompoundOperator, ValueOperator

Scalar = Union[str, int, float, bool, None]


class SubQuery(WireModel):
    """A derived set: values of ``column`` from rows of ``table`` matching ``condition``."""

    table: str
    condition: "Condition"
    column: str | None = None

    @field_validator("table", mode="before")
    @classmethod
    def _validate_table(cls, value: Any) -> str:
        return ensure_identifier(value, "table name")

    @field_validator("column", mode="before")
    @classmethod
    def _validate_column(cls, value: Any) -> str | None:
        return ensure_optional_identifier(value, "column name")


class ValueCondition(WireModel):
    kind: Literal["value"] = "value"
    column: str | None = None
    operator: ValueOperator | None = None
    operand: SubQuery | list[Scalar] | Scalar = None

    @field_validator("column", mode="before")
    @classmethod
    def _validate_column(cls, value: Any) -> str | None:
        return ensure_optional_identifier(value, "column name")


class CompoundCondition(WireModel):
    kind: Literal["compound"] = "compound"
    operator: CompoundOperator = CompoundOperator.AND
    operands: list["Condition"] = Field(default_factory=list)
    source_table: str | None = None
    projected_column: str | None = None

    @field_validator("source_table", "projected_column", mode="before")
    @classmethod
    def _validate_names(cls, value: Any) -> str | None:
        return ensure_optional_identifier(value)

    @property
    def is_subquery(self) -> bool:
        return self.source_table is not None and self.projected_column is not None


def _condition_tag(value: Any) -> str | None:
    if isinstance(value, BaseModel):
        return getattr(value, "kind", None)
    if isinstance(value, Mapping):
        kind = value.get("kind")
        if kind is not None:
            return kind
        return "compound" if "operands" in value else "value"
    return None


Condition = Annotated[
    Union[
        Annotated[ValueCondition, Tag("value")],
        Annotated[CompoundCondition, Tag("compound")],
    ],
    Discriminator(_condition_tag),
]

SubQuery.model_rebuild()
CompoundCondition.model_rebuild()

_CONDITION_ADAPTER: TypeAdapter[Condition] = TypeAdapter(Condition)


def parse_condition(data: Any) -> ValueCondition | CompoundCondition | None:
    """Validate a raw payload into a condition tree.

    Raises:
        MalformedCondition: If the payload does not describe a condition.
    """
    if data is None:
        return None
    try:
        return _CONDITION_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise MalformedCondition(f"Invalid condition: {e}") from e


__all__ = [
    "CompoundCondition",
    "Condition",
    "SubQuery",
    "ValueCondition",
    "parse_condition",
]
