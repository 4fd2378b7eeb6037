from enum import StrEnum


class _CaseInsensitiveEnum(StrEnum):
    @classmethod
    def _missing_(cls, value: object) -> "_CaseInsensitiveEnum | None":
        if isinstance(value, str):
            normalized = value.strip().upper()
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class ColumnType(_CaseInsensitiveEnum):
    TEXT = "TEXT"
    INTEGER = "INTEGER"
    REAL = "REAL"
    BLOB = "BLOB"
    NUMERIC = "NUMERIC"

    @classmethod
    def from_declared(cls, declared: str | None) -> "ColumnType":
        """Map a declared SQLite column type to its affinity."""
        decl = (declared or "").upper()
        if "INT" in decl:
            return cls.INTEGER
        if any(token in decl for token in ("CHAR", "CLOB", "TEXT")):
            return cls.TEXT
        if not decl or "BLOB" in decl:
            return cls.BLOB
        if any(token in decl for token in ("REAL", "FLOA", "DOUB")):
            return cls.REAL
        return cls.NUMERIC


class ValueOperator(_CaseInsensitiveEnum):
    EQ = "EQ"
    NEQ = "NEQ"
    LIKE = "LIKE"
    NOT_LIKE = "NOT_LIKE"
    IS_NULL = "IS_NULL"
    IS_NOT_NULL = "IS_NOT_NULL"
    BETWEEN = "BETWEEN"
    IN_SUBQUERY = "IN_SUBQUERY"


class CompoundOperator(_CaseInsensitiveEnum):
    AND = "AND"
    OR = "OR"


class SortDirection(_CaseInsensitiveEnum):
    ASC = "ASC"
    DESC = "DESC"


class AggregateFunction(_CaseInsensitiveEnum):
    MIN = "MIN"
    MAX = "MAX"
    AVG = "AVG"
    SUM = "SUM"
    COUNT = "COUNT"


class Rights(StrEnum):
    READ = "read"
    WRITE = "write"
    CREATE = "create"


class ViewState(StrEnum):
    UNBUILT = "unbuilt"
    BUILDING = "building"
    FRESH = "fresh"
    STALE = "stale"
