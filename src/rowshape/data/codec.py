"""Structural encoder/decoder between record values and SQL statements.

Both directions walk the value tree with frames. Each frame knows its parent
and its own key (a field name or a sequence index), so errors can report the
full path, e.g. ``[3].created_at``.

Write path: a scalar found directly below the root binds to the statement
parameter of the same name. Read path: a keyed frame looks its name up as a
column of the current result row, and a sequence frame *is* the row cursor:
each element is the next row of the result set.
"""

from __future__ import annotations

import dataclasses
import datetime
import enum
import typing
import uuid
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from rowshape.exceptions import (
    ColumnNotFoundError,
    DecodeError,
    EncodeError,
    RowNotFoundError,
    TypeMismatchError,
)
from rowshape.schema.descriptors import describe, is_record_type

if TYPE_CHECKING:
    from sqlalchemy import CursorResult, Row


Key = str | int


class CodingFrame:
    """One node of a coding path."""

    def __init__(self, parent: CodingFrame | None = None, key: Key | None = None) -> None:
        self.parent = parent
        self.key = key

    @property
    def path(self) -> list[Key]:
        keys: list[Key] = []
        frame: CodingFrame | None = self
        while frame is not None and frame.parent is not None:
            keys.append(frame.key)  # type: ignore[arg-type]
            frame = frame.parent
        keys.reverse()
        return keys

    @property
    def is_root(self) -> bool:
        return self.parent is None


# === Write path ===


def to_sql_value(value: Any, path: list[Key] | None = None) -> Any:
    """Convert a Python scalar into the value bound to a statement parameter."""
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        return to_sql_value(value.value, path)
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, int | float):
        try:
            return float(value)
        except OverflowError as e:
            raise EncodeError(f"Integer {value} does not fit a floating value", path or []) from e
    if isinstance(value, str):
        return value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime.datetime):
        # Stored values carry no zone and decode as UTC-aware.
        if value.tzinfo is None or value.utcoffset() is None:
            raise EncodeError("Naive datetimes are not supported; attach a timezone (e.g. datetime.UTC)", path or [])
        return value.timestamp()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    raise EncodeError(f"Unsupported value of type {type(value).__name__}", path or [])


class RowEncoder(CodingFrame):
    """Collects named parameter bindings for one statement execution."""

    def __init__(
        self,
        parameters: frozenset[str],
        parent: RowEncoder | None = None,
        key: Key | None = None,
        bindings: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(parent, key)
        self.parameters = parameters
        self.bindings: dict[str, Any] = {} if bindings is None else bindings

    def child(self, key: Key) -> RowEncoder:
        return RowEncoder(self.parameters, parent=self, key=key, bindings=self.bindings)

    def encode(self, value: Any) -> None:
        """Walk a value and bind every scalar it contains."""
        if isinstance(value, BaseModel) or (
            dataclasses.is_dataclass(value) and not isinstance(value, type)
        ):
            shape = describe(type(value))
            for name in shape.fields:
                self.child(name).encode(getattr(value, name))
        elif isinstance(value, Mapping):
            for name, item in value.items():
                self.child(name).encode(item)
        elif isinstance(value, list | tuple):
            for index, item in enumerate(value):
                self.child(index).encode(item)
        else:
            self.encode_scalar(value)

    def encode_scalar(self, value: Any) -> None:
        if self.parent is None:
            raise EncodeError("A scalar needs a field name to bind to", self.path)
        if not self.parent.is_root:
            raise EncodeError("Nested values cannot be bound", self.path)
        if not isinstance(self.key, str):
            raise EncodeError("Sequence elements cannot be bound to named parameters", self.path)
        if self.key not in self.parameters:
            raise EncodeError(f"Statement has no parameter '{self.key}'", self.path)
        self.bindings[self.key] = to_sql_value(value, self.path)


# === Read path ===


class RowCursor:
    """Result set being decoded; ``step`` advances to the next row."""

    def __init__(self, result: CursorResult[Any]) -> None:
        self._result = result
        self.columns: list[str] = list(result.keys())
        self._index = {name: i for i, name in enumerate(self.columns)}
        self.row: Row[Any] | None = None

    def step(self) -> bool:
        """Fetch the next row. Returns False once the result set is exhausted."""
        self.row = self._result.fetchone()
        return self.row is not None

    def has_column(self, name: str) -> bool:
        return name in self._index

    def value(self, name: str, path: list[Key]) -> Any:
        if self.row is None:
            raise RowNotFoundError(path)
        try:
            index = self._index[name]
        except KeyError:
            raise ColumnNotFoundError(name, self.columns, path) from None
        return self.row[index]

    def close(self) -> None:
        self._result.close()


def _as_float(value: Any, path: list[Key]) -> float:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return float(value)
    raise TypeMismatchError("a numeric column", value, path)


def from_sql_value(scalar_type: type, value: Any, path: list[Key]) -> Any:
    """Convert a non-null column value into an instance of ``scalar_type``."""
    if isinstance(scalar_type, type) and issubclass(scalar_type, enum.Enum):
        raw_type = type(next(iter(scalar_type)).value)
        try:
            return scalar_type(from_sql_value(raw_type, value, path))
        except ValueError as e:
            raise DecodeError(f"{value!r} is not a valid {scalar_type.__name__}", path) from e
    if scalar_type is str:
        if not isinstance(value, str):
            raise TypeMismatchError("a text column", value, path)
        return value
    if scalar_type is uuid.UUID:
        if not isinstance(value, str):
            raise TypeMismatchError("a text column", value, path)
        try:
            return uuid.UUID(value)
        except ValueError as e:
            raise DecodeError(f"{value!r} is not a valid UUID", path) from e
    if scalar_type is bool:
        return _as_float(value, path) != 0
    if scalar_type is int:
        return int(_as_float(value, path))
    if scalar_type is float:
        return _as_float(value, path)
    if scalar_type is datetime.datetime:
        return datetime.datetime.fromtimestamp(_as_float(value, path), tz=datetime.UTC)
    if scalar_type is datetime.timedelta:
        return datetime.timedelta(seconds=_as_float(value, path))
    raise DecodeError(f"Unsupported target type {scalar_type!r}", path)


class RowDecoder(CodingFrame):
    """Decodes records from the rows of an executed statement."""

    def __init__(self, cursor: RowCursor, parent: RowDecoder | None = None, key: Key | None = None) -> None:
        super().__init__(parent, key)
        self.cursor = cursor

    def child(self, key: Key) -> RowDecoder:
        return RowDecoder(self.cursor, parent=self, key=key)

    def decode(self, target: Any) -> Any:
        """Decode ``target`` (a record type or ``list[RecordType]``) at this frame."""
        if typing.get_origin(target) is list:
            (item_type,) = typing.get_args(target)
            return list(self.iter_decode(item_type))
        if is_record_type(target):
            return self.decode_record(target)
        raise DecodeError(f"Cannot decode {target!r} from a result row", self.path)

    def iter_decode(self, item_type: Any) -> Iterator[Any]:
        """Yield one decoded element per remaining row, in result order."""
        index = 0
        while self.cursor.step():
            yield self.child(index).decode(item_type)
            index += 1

    def decode_record(self, record_type: type) -> Any:
        if self.cursor.row is None:
            raise RowNotFoundError(self.path)
        shape = describe(record_type)
        values: dict[str, Any] = {}
        for name, descriptor in shape.fields.items():
            if descriptor.nullable and not self.cursor.has_column(name):
                # Column not added yet; optional fields decode as absent.
                values[name] = None
                continue
            values[name] = self.child(name).decode_scalar(shape.scalar_types[name], descriptor.nullable)
        return record_type(**values)

    def decode_scalar(self, scalar_type: type, nullable: bool = False) -> Any:
        if not isinstance(self.key, str):
            raise DecodeError("Column name is not set", self.path)
        value = self.cursor.value(self.key, self.path)
        if value is None:
            if nullable:
                return None
            raise TypeMismatchError(scalar_type.__name__, value, self.path)
        return from_sql_value(scalar_type, value, self.path)
