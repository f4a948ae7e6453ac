"""Core components for rowshape."""

from rowshape.core.connection import DatabaseConnection
from rowshape.core.locking import ReadWriteLock
from rowshape.core.types import (
    FieldChange,
    FieldDescriptor,
    LiveColumn,
    LogicalType,
    MigrationStep,
    Operation,
    ReconcileResult,
    SchemaDelta,
    StepKind,
)

__all__ = [
    "DatabaseConnection",
    "ReadWriteLock",
    "LogicalType",
    "Operation",
    "StepKind",
    "FieldDescriptor",
    "LiveColumn",
    "FieldChange",
    "SchemaDelta",
    "MigrationStep",
    "ReconcileResult",
]
