"""Record type introspection and table reconciliation."""

from rowshape.schema.descriptors import RecordShape, describe, field_descriptors
from rowshape.schema.reconciler import SchemaReconciler

__all__ = ["RecordShape", "SchemaReconciler", "describe", "field_descriptors"]
