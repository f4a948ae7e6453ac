"""rowshape - typed records in SQLite without hand-written SQL.

Table schemas are derived from the shape of a record type (a dataclass or a
pydantic model) and live tables are migrated automatically when that shape
changes, keeping existing rows whenever a safe migration exists.

Example:
    from dataclasses import dataclass
    from typing import ClassVar

    from rowshape import Database

    @dataclass
    class Contact:
        __primary_key__: ClassVar[str] = "email"
        email: str
        name: str
        age: int | None = None

    db = Database("sqlite:///contacts.db")

    # Creates (or migrates) the Contact table, then inserts
    db.insert(Contact("ada@example.com", "Ada"))

    contact = db.get(Contact, "ada@example.com")
    everyone = db.get_all(Contact)
    db.delete(Contact, "ada@example.com")
"""

from rowshape.core.engine import Database
from rowshape.core.locking import ReadWriteLock
from rowshape.core.session import Session
from rowshape.core.types import (
    FieldDescriptor,
    LiveColumn,
    LogicalType,
    MigrationStep,
    Operation,
    ReconcileResult,
    StepKind,
)
from rowshape.exceptions import (
    CodecError,
    ColumnNotFoundError,
    ConfigurationError,
    ConnectionError,
    DecodeError,
    DestructiveMigrationError,
    EncodeError,
    MixedBatchError,
    NestedFieldError,
    NoFieldsError,
    NotARecordTypeError,
    PrimaryKeyError,
    RowNotFoundError,
    RowShapeError,
    SchemaChangeError,
    StorageError,
    TypeMismatchError,
    UnresolvedAnnotationError,
    UnsupportedFieldTypeError,
)
from rowshape.schema import RecordShape, SchemaReconciler, describe

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "Database",
    "Session",
    "ReadWriteLock",
    "SchemaReconciler",
    # Types
    "RecordShape",
    "FieldDescriptor",
    "LiveColumn",
    "LogicalType",
    "MigrationStep",
    "Operation",
    "ReconcileResult",
    "StepKind",
    "describe",
    # Exceptions
    "RowShapeError",
    "ConnectionError",
    "ConfigurationError",
    "NotARecordTypeError",
    "NoFieldsError",
    "PrimaryKeyError",
    "NestedFieldError",
    "UnresolvedAnnotationError",
    "UnsupportedFieldTypeError",
    "MixedBatchError",
    "StorageError",
    "SchemaChangeError",
    "DestructiveMigrationError",
    "CodecError",
    "EncodeError",
    "DecodeError",
    "RowNotFoundError",
    "ColumnNotFoundError",
    "TypeMismatchError",
]
