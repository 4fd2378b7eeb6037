import re
from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.dialects.sqlite.base import SQLiteIdentifierPreparer

T_Model = TypeVar("T_Model", bound="WireModel")

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_RESERVED_WORDS = frozenset(SQLiteIdentifierPreparer.reserved_words)


class WireModel(BaseModel):
    """Immutable model exchanged with remote callers using camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_wire(cls: Type[T_Model], data: Mapping[str, Any] | BaseModel) -> T_Model:
        return cls.model_validate(data)


def ensure_identifier(value: Any, field_name: str = "identifier") -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    name = value.strip()
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"{field_name} {value!r} is not a valid SQL identifier")
    if name.lower() in _RESERVED_WORDS:
        raise ValueError(f"{field_name} {value!r} is a reserved SQL keyword")
    return name


def ensure_optional_identifier(value: Any, field_name: str = "identifier") -> str | None:
    if value is None:
        return None
    return ensure_identifier(value, field_name)
