"""Custom exceptions for rowshape.

Errors fall into two families:
- Configuration errors: the record type itself is unusable. These are
  programmer errors and are raised before any table is touched.
- Runtime errors: storage engine failures and decode failures, surfaced to
  the caller as typed exceptions carrying enough context to act on.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class RowShapeError(Exception):
    """Base exception for all rowshape errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConnectionError(RowShapeError):
    """Failed to connect to the database."""

    pass


# === Configuration Errors ===


class ConfigurationError(RowShapeError):
    """The record type cannot be mapped to a table."""

    def __init__(self, record_type: Any, reason: str, **context: Any) -> None:
        type_name = getattr(record_type, "__qualname__", repr(record_type))
        super().__init__(f"Invalid record type '{type_name}': {reason}", {"record_type": type_name, **context})
        self.record_type = record_type
        self.reason = reason


class NotARecordTypeError(ConfigurationError):
    """Type is not a flat dataclass or pydantic model."""

    def __init__(self, record_type: Any) -> None:
        super().__init__(
            record_type,
            "expected a dataclass or pydantic BaseModel subclass",
        )


class NoFieldsError(ConfigurationError):
    """Record type declares no fields."""

    def __init__(self, record_type: Any) -> None:
        super().__init__(record_type, "record type has no fields")


class PrimaryKeyError(ConfigurationError):
    """Primary key declaration is missing or does not name exactly one field."""

    def __init__(self, record_type: Any, declared: Any, available: Sequence[str]) -> None:
        if declared is None:
            reason = "no primary key declared. Set __primary_key__ to one of the field names"
        else:
            reason = (
                f"primary key {declared!r} must name exactly one field. "
                f"Available fields: {', '.join(available)}"
            )
        super().__init__(record_type, reason, declared=declared, available_fields=list(available))
        self.declared = declared


class NestedFieldError(ConfigurationError):
    """A field holds a nested structured or sequence value."""

    def __init__(self, record_type: Any, field_name: str, annotation: Any) -> None:
        super().__init__(
            record_type,
            f"field '{field_name}' is a nested value ({annotation!r}); only scalar columns are supported",
            field_name=field_name,
        )
        self.field_name = field_name


class UnresolvedAnnotationError(ConfigurationError):
    """A field annotation names a type that cannot be resolved."""

    def __init__(self, record_type: Any, name: str | None, detail: str) -> None:
        super().__init__(
            record_type,
            f"cannot resolve field annotations ({detail}). "
            "Define referenced types at module level before the record type",
            unresolved=name,
        )
        self.unresolved = name


class UnsupportedFieldTypeError(ConfigurationError):
    """A field's scalar type has no storage mapping."""

    VALID_TYPES = ["str", "uuid.UUID", "bool", "int", "float", "datetime", "timedelta", "Enum"]

    def __init__(self, record_type: Any, field_name: str, annotation: Any, optional: bool = False) -> None:
        kind = "optional type" if optional else "type"
        super().__init__(
            record_type,
            f"unsupported {kind} {annotation!r} for field '{field_name}'. "
            f"Valid types: {', '.join(self.VALID_TYPES)}",
            field_name=field_name,
            valid_types=self.VALID_TYPES,
        )
        self.field_name = field_name


class MixedBatchError(ConfigurationError):
    """A batch operation received records of more than one type."""

    def __init__(self, record_type: Any, other: Any) -> None:
        super().__init__(
            record_type,
            f"batch also contains '{getattr(other, '__qualname__', other)}' records; "
            "insert one record type per call",
        )


# === Storage Errors ===


class StorageError(RowShapeError):
    """The storage engine reported a non-success status."""

    def __init__(self, message: str, code: int | None = None, name: str | None = None) -> None:
        super().__init__(message, {"code": code, "name": name})
        self.code = code
        self.name = name

    @classmethod
    def from_exception(cls, error: BaseException) -> StorageError:
        """Wrap a driver error, keeping the engine's code and message."""
        orig = getattr(error, "orig", None) or error
        code = getattr(orig, "sqlite_errorcode", None)
        name = getattr(orig, "sqlite_errorname", None)
        return cls(str(orig), code=code, name=name)


class SchemaChangeError(StorageError):
    """Schema reconciliation failed."""

    pass


class DestructiveMigrationError(SchemaChangeError):
    """Reconciliation needs to drop the table but destructive migrations are disabled."""

    def __init__(self, table_name: str, pending: dict[str, list[str]]) -> None:
        details = ", ".join(f"{k}: {', '.join(v)}" for k, v in pending.items() if v)
        message = (
            f"Table '{table_name}' can only be migrated by dropping it ({details}). "
            "Pass allow_destructive=True to accept the data loss."
        )
        super().__init__(message)
        self.context = {"table_name": table_name, "pending": pending}
        self.table_name = table_name
        self.pending = pending


# === Codec Errors ===


def format_path(path: Sequence[str | int]) -> str:
    """Render a coding path as ``a.b[0].c``."""
    out = ""
    for key in path:
        if isinstance(key, int):
            out += f"[{key}]"
        else:
            out += f".{key}" if out else key
    return out or "<root>"


class CodecError(RowShapeError):
    """Base for encode/decode failures, carrying the coding path."""

    def __init__(self, message: str, path: Sequence[str | int] = ()) -> None:
        rendered = format_path(path)
        super().__init__(f"{message} (at {rendered})", {"path": rendered})
        self.path = list(path)


class EncodeError(CodecError):
    """A value cannot be bound to the statement."""

    pass


class DecodeError(CodecError):
    """A result row cannot be decoded into the requested type."""

    pass


class RowNotFoundError(DecodeError):
    """The statement produced no row to decode."""

    def __init__(self, path: Sequence[str | int] = ()) -> None:
        super().__init__("No data in query", path)


class ColumnNotFoundError(DecodeError):
    """A named column is absent from the result set."""

    def __init__(self, column: str, available: Sequence[str], path: Sequence[str | int] = ()) -> None:
        super().__init__(
            f"Column '{column}' not found. Available columns: {', '.join(available)}",
            path,
        )
        self.column = column
        self.available = list(available)


class TypeMismatchError(DecodeError):
    """Column value does not have the stored type the field expects."""

    def __init__(self, expected: str, value: Any, path: Sequence[str | int] = ()) -> None:
        super().__init__(f"Expected {expected}, got {type(value).__name__}", path)
        self.expected = expected
