"""Error types surfaced by tableview operations.

Every error carries a stable ``kind`` so remote callers can branch on it
without parsing messages. Engine failures keep the statement that failed.
"""

from typing import Any


class TableViewError(Exception):
    """Base error with a machine-readable kind for remote responses."""

    kind = "TABLEVIEW_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "error": self.kind,
            "message": self.message,
            "details": self.details,
        }


class MalformedCondition(TableViewError):
    """A filter expression has an invalid shape."""

    kind = "MALFORMED_CONDITION"


class InvalidArguments(TableViewError):
    """Method arguments failed validation."""

    kind = "INVALID_ARGUMENTS"


class UnknownGuid(TableViewError):
    """A view key is not present in the cache."""

    kind = "UNKNOWN_GUID"

    def __init__(self, guid: str) -> None:
        super().__init__(
            f"Unknown view guid {guid!r}; resolve the view again with loadTableGuid",
            guid=guid,
        )
        self.guid = guid


class UnknownMethod(TableViewError):
    kind = "UNKNOWN_METHOD"


class AccessDenied(TableViewError):
    kind = "ACCESS_DENIED"


class StorageError(TableViewError):
    """The database engine rejected a statement."""

    kind = "STORAGE_ERROR"

    def __init__(self, message: str, statement: str | None = None, **details: Any) -> None:
        super().__init__(message, statement=statement, **details)
        self.statement = statement

    def __str__(self) -> str:
        if self.statement:
            return f"{self.message} (statement: {self.statement})"
        return self.message


class TableAlreadyExists(StorageError):
    kind = "TABLE_ALREADY_EXISTS"


class TableNotFound(StorageError):
    kind = "TABLE_NOT_FOUND"
