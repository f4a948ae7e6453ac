"""Input parsing utilities for CLI commands."""

import importlib
import os
import sys
import uuid
from typing import Any

from rowshape.schema.descriptors import RecordShape, describe, is_record_type


def load_record_type(target: str) -> type:
    """Import a record type from a ``module:Class`` reference.

    The current directory is importable, so ``models:Contact`` finds
    ``./models.py``.

    Raises:
        ValueError: If the reference is malformed or not a record type
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid record reference: '{target}'. Expected format: module:Class")

    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f"Cannot import module '{module_name}': {e}") from e

    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise ValueError(f"'{module_name}' has no attribute '{attr}'") from None

    if not is_record_type(obj):
        raise ValueError(f"'{target}' is not a dataclass or pydantic model")
    return obj


def parse_key(value: str, shape: RecordShape) -> Any:
    """Convert a primary key given on the command line to the field's type."""
    key_type = shape.scalar_types[shape.primary_key]
    try:
        if key_type is bool:
            return value.lower() in ("1", "true", "yes")
        if key_type in (int, float):
            return key_type(value)
        if key_type is uuid.UUID:
            return uuid.UUID(value)
    except ValueError as e:
        raise ValueError(f"Invalid key '{value}' for {key_type.__name__} primary key") from e
    return value


def resolve(target: str) -> tuple[type, RecordShape]:
    """Load a record type and derive its shape."""
    record_type = load_record_type(target)
    return record_type, describe(record_type)
