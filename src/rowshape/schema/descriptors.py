"""Record type introspection.

Turns a dataclass or pydantic model into the ordered set of column
descriptors its table should have, plus the per-field scalar mapping the
codec needs to rebuild values. Results are computed once per class and
cached for the life of the process.
"""

from __future__ import annotations

import dataclasses
import datetime
import enum
import threading
import types
import typing
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel

from rowshape.core.types import FieldDescriptor, LogicalType
from rowshape.exceptions import (
    NestedFieldError,
    NoFieldsError,
    NotARecordTypeError,
    PrimaryKeyError,
    UnresolvedAnnotationError,
    UnsupportedFieldTypeError,
)

# Order matters: bool before int (bool subclasses int), enums before everything.
SCALAR_TYPES: dict[type, LogicalType] = {
    str: LogicalType.TEXT,
    uuid.UUID: LogicalType.TEXT,
    bool: LogicalType.BOOLEAN,
    int: LogicalType.INTEGER,
    float: LogicalType.REAL,
    datetime.datetime: LogicalType.REAL,
    datetime.timedelta: LogicalType.REAL,
}

_ENUM_VALUE_TYPES = {str: LogicalType.TEXT, int: LogicalType.INTEGER, float: LogicalType.REAL}

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset, dict)


@dataclass(frozen=True)
class RecordShape:
    """Everything derived from a record type's structure."""

    record_type: type
    table_name: str
    primary_key: str
    fields: Mapping[str, FieldDescriptor]
    scalar_types: Mapping[str, type]

    @property
    def column_names(self) -> list[str]:
        return list(self.fields)

    @property
    def primary_key_field(self) -> FieldDescriptor:
        return self.fields[self.primary_key]


_cache: dict[type, RecordShape] = {}
_cache_lock = threading.Lock()


def is_record_type(obj: Any) -> bool:
    """Check if obj is a class usable as a record type."""
    if not isinstance(obj, type):
        return False
    return dataclasses.is_dataclass(obj) or issubclass(obj, BaseModel)


def table_name_for(record_type: type) -> str:
    """Table backing a record type: ``__table_name__`` or the class name."""
    return getattr(record_type, "__table_name__", None) or record_type.__name__


def _declared_annotations(record_type: type) -> dict[str, Any]:
    """Field name -> annotation, in declaration order."""
    if isinstance(record_type, type) and issubclass(record_type, BaseModel):
        return {name: info.annotation for name, info in record_type.model_fields.items()}

    try:
        hints = typing.get_type_hints(record_type)
    except NameError as e:
        raise UnresolvedAnnotationError(record_type, e.name, str(e)) from e
    return {f.name: hints.get(f.name, f.type) for f in dataclasses.fields(record_type)}


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Strip ``None`` from ``X | None``. Returns (inner, nullable)."""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1 and len(args) != len(typing.get_args(annotation)):
            return args[0], True
    return annotation, False


def _enum_storage(annotation: type[enum.Enum]) -> LogicalType | None:
    value_types = {type(member.value) for member in annotation}
    if len(value_types) != 1:
        return None
    return _ENUM_VALUE_TYPES.get(value_types.pop())


def logical_type_for(record_type: type, name: str, annotation: Any, nullable: bool) -> LogicalType:
    """Infer the storage type of one (already unwrapped) field annotation."""
    origin = typing.get_origin(annotation)
    if origin in _SEQUENCE_ORIGINS or annotation in _SEQUENCE_ORIGINS or is_record_type(annotation):
        raise NestedFieldError(record_type, name, annotation)

    if isinstance(annotation, type):
        if issubclass(annotation, enum.Enum):
            storage = _enum_storage(annotation)
            if storage is not None:
                return storage
        elif annotation in SCALAR_TYPES:
            return SCALAR_TYPES[annotation]

    raise UnsupportedFieldTypeError(record_type, name, annotation, optional=nullable)


def _build_shape(record_type: type) -> RecordShape:
    if not is_record_type(record_type):
        raise NotARecordTypeError(record_type)

    annotations = _declared_annotations(record_type)
    if not annotations:
        raise NoFieldsError(record_type)

    primary_key = getattr(record_type, "__primary_key__", None)
    if not isinstance(primary_key, str) or primary_key not in annotations:
        raise PrimaryKeyError(record_type, primary_key, list(annotations))

    fields: dict[str, FieldDescriptor] = {}
    scalar_types: dict[str, type] = {}
    for name, annotation in annotations.items():
        inner, nullable = _unwrap_optional(annotation)
        logical_type = logical_type_for(record_type, name, inner, nullable)
        fields[name] = FieldDescriptor(
            name=name,
            logical_type=logical_type,
            nullable=nullable,
            is_primary_key=name == primary_key,
        )
        scalar_types[name] = inner

    return RecordShape(
        record_type=record_type,
        table_name=table_name_for(record_type),
        primary_key=primary_key,
        fields=types.MappingProxyType(fields),
        scalar_types=types.MappingProxyType(scalar_types),
    )


def describe(record_type: type) -> RecordShape:
    """Get the cached shape of a record type, deriving it on first use.

    Args:
        record_type: A dataclass or pydantic model declaring ``__primary_key__``

    Returns:
        The record's shape

    Raises:
        ConfigurationError: If the type cannot be mapped to a flat table
    """
    if not isinstance(record_type, type):
        raise NotARecordTypeError(record_type)
    shape = _cache.get(record_type)
    if shape is not None:
        return shape
    with _cache_lock:
        shape = _cache.get(record_type)
        if shape is None:
            shape = _build_shape(record_type)
            _cache[record_type] = shape
    return shape


def field_descriptors(record_type: type) -> dict[str, FieldDescriptor]:
    """Ordered mapping of field name -> FieldDescriptor."""
    return dict(describe(record_type).fields)
