"""Core types for rowshape.

Descriptors and migration plans are pydantic models so they can be dumped
as JSON by the CLI. Working sets used while reconciling are dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class LogicalType(StrEnum):
    """Storage types a field can map to. Values are the declared SQL types."""

    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    INTEGER = "INTEGER"
    REAL = "REAL"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid storage type values."""
        return [t.value for t in cls]


class Operation(StrEnum):
    """The fixed statements prepared per record type."""

    INSERT = "insert"
    DELETE = "delete"
    GET = "get"
    GET_ALL = "get_all"


class StepKind(StrEnum):
    """Kinds of DDL the reconciler can run."""

    CREATE = "create"
    ADD_COLUMN = "add_column"
    REBUILD = "rebuild"
    RESET = "reset"  # drop + create, discards rows


def quote(identifier: str) -> str:
    """Quote an SQL identifier."""
    return '"' + identifier.replace('"', '""') + '"'


class FieldDescriptor(BaseModel):
    """Desired column shape derived from a record field."""

    name: str
    logical_type: LogicalType
    nullable: bool
    is_primary_key: bool = False

    model_config = {"frozen": True}

    @property
    def sql(self) -> str:
        """Column definition as used in CREATE TABLE / ADD COLUMN."""
        out = f"{quote(self.name)} {self.logical_type.value}"
        if not self.nullable:
            out += " NOT NULL"
        if self.is_primary_key:
            out += " PRIMARY KEY"
        return out

    def matches(self, column: LiveColumn) -> bool:
        return (
            column.stored_type.upper() == self.logical_type.value
            and column.not_null == (not self.nullable)
            and column.is_primary_key == self.is_primary_key
        )


class LiveColumn(BaseModel):
    """Column shape observed on the live table."""

    name: str
    stored_type: str
    not_null: bool
    is_primary_key: bool

    model_config = {"frozen": True}


_NUMERIC = {LogicalType.INTEGER.value, LogicalType.REAL.value}


class FieldChange(BaseModel):
    """A live column whose desired shape differs under the same name."""

    source: LiveColumn
    target: FieldDescriptor

    model_config = {"frozen": True}

    @property
    def touches_primary_key(self) -> bool:
        return self.source.is_primary_key or self.target.is_primary_key

    @property
    def compatible(self) -> bool:
        """Whether existing values can be copied into the new column shape."""
        if self.touches_primary_key:
            return False
        if not self.target.nullable and not self.source.not_null:
            return False
        stored = self.source.stored_type.upper()
        wanted = self.target.logical_type.value
        if stored in _NUMERIC and wanted in _NUMERIC:
            return True
        return stored == wanted


@dataclass
class SchemaDelta:
    """Pending differences between the desired and the live table shape."""

    to_add: list[FieldDescriptor] = field(default_factory=list)
    to_remove: list[LiveColumn] = field(default_factory=list)
    to_change: list[FieldChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_remove or self.to_change)

    def summary(self) -> dict[str, list[str]]:
        return {
            "add": [f.name for f in self.to_add],
            "remove": [c.name for c in self.to_remove],
            "change": [c.target.name for c in self.to_change],
        }


class MigrationStep(BaseModel):
    """One DDL step of a reconciliation plan."""

    kind: StepKind
    table_name: str
    fields: list[FieldDescriptor] = Field(default_factory=list)
    description: str = ""

    @property
    def destructive(self) -> bool:
        return self.kind == StepKind.RESET


class ReconcileResult(BaseModel):
    """Outcome of reconciling one record type against its table."""

    table_name: str
    steps: list[MigrationStep] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True when any DDL was executed."""
        return bool(self.steps)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
