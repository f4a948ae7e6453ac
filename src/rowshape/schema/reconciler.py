"""Schema reconciliation for record tables.

Brings a live table in line with the shape derived from a record type,
using the narrowest operation that keeps existing rows:

1. Missing table: create it.
2. Incompatible column changes are turned into drop + re-add.
3. Compatible changes and column removals: rebuild the table in one
   transaction (copy into a temporary table, drop, rename), keeping the data
   of every column that survives.
4. New nullable columns: ``ALTER TABLE ... ADD COLUMN``.
5. Anything else (primary key changes, new NOT NULL columns): drop and
   recreate the table. Rows are lost; this is logged and can be refused with
   ``allow_destructive=False``.

Planning only looks at the in-memory delta, so :meth:`SchemaReconciler.plan`
doubles as a dry run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from rowshape.core.types import (
    FieldChange,
    FieldDescriptor,
    LiveColumn,
    MigrationStep,
    ReconcileResult,
    SchemaDelta,
    StepKind,
    quote,
)
from rowshape.exceptions import DestructiveMigrationError, SchemaChangeError
from rowshape.schema.descriptors import RecordShape, describe

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)

TEMP_PREFIX = "_tmp_"


def live_columns(connection: Connection, table_name: str) -> list[LiveColumn] | None:
    """Introspect a table's columns.

    Returns:
        The live columns, or None if the table does not exist
    """
    with connection.begin():
        rows = connection.execute(text(f"PRAGMA table_info({quote(table_name)})")).all()
    if not rows:
        return None
    # cid, name, type, notnull, dflt_value, pk
    return [
        LiveColumn(
            name=row[1],
            stored_type=row[2] or "",
            not_null=bool(row[3]),
            is_primary_key=row[5] > 0,
        )
        for row in rows
    ]


def compute_delta(desired: Sequence[FieldDescriptor], live: Sequence[LiveColumn]) -> SchemaDelta:
    """Name-match live columns against desired fields."""
    by_name = {f.name: f for f in desired}
    live_names = {c.name for c in live}
    delta = SchemaDelta(to_add=[f for f in desired if f.name not in live_names])
    for column in live:
        wanted = by_name.get(column.name)
        if wanted is None:
            delta.to_remove.append(column)
        elif not wanted.matches(column):
            delta.to_change.append(FieldChange(source=column, target=wanted))
    return delta


def create_table_sql(table_name: str, fields: Sequence[FieldDescriptor]) -> str:
    columns = ",\n  ".join(f.sql for f in fields)
    return f"CREATE TABLE {quote(table_name)} (\n  {columns}\n)"


class SchemaReconciler:
    """Plans and applies table migrations for record types."""

    def __init__(self, allow_destructive: bool = True) -> None:
        """Initialize the reconciler.

        Args:
            allow_destructive: Whether the drop-and-recreate fallback may run.
                When False, such plans raise DestructiveMigrationError instead.
        """
        self.allow_destructive = allow_destructive

    def plan_for(self, shape: RecordShape, live: Sequence[LiveColumn] | None) -> list[MigrationStep]:
        """Compute the migration steps for a shape against observed columns."""
        table = shape.table_name
        desired = list(shape.fields.values())

        if live is None:
            return [MigrationStep(kind=StepKind.CREATE, table_name=table, fields=desired)]

        delta = compute_delta(desired, live)
        steps: list[MigrationStep] = []

        while not delta.is_empty:
            # Primary-key changes stay in to_change: they block the rebuild and
            # the add-column step, so the plan ends in a reset either way.
            # Splitting them into remove + add would reach the same reset.
            incompatible = next(
                (c for c in delta.to_change if not c.touches_primary_key and not c.compatible),
                None,
            )
            if incompatible is not None:
                delta.to_change.remove(incompatible)
                delta.to_remove.append(incompatible.source)
                delta.to_add.append(incompatible.target)
                continue

            adding = {f.name for f in delta.to_add}
            kept = [f for f in desired if f.name not in adding]
            if (
                (delta.to_change or delta.to_remove)
                and kept
                and all(c.compatible for c in delta.to_change)
                and not any(c.is_primary_key for c in delta.to_remove)
            ):
                steps.append(
                    MigrationStep(
                        kind=StepKind.REBUILD,
                        table_name=table,
                        fields=kept,
                        description=(
                            f"remove {[c.name for c in delta.to_remove]}, "
                            f"change {[c.target.name for c in delta.to_change]}"
                        ),
                    )
                )
                delta.to_change.clear()
                delta.to_remove.clear()
                continue

            # A column still pending removal cannot be added under the same name.
            pending = {c.name for c in delta.to_remove}
            addable = next(
                (f for f in delta.to_add if f.nullable and not f.is_primary_key and f.name not in pending),
                None,
            )
            if addable is not None:
                delta.to_add.remove(addable)
                steps.append(MigrationStep(kind=StepKind.ADD_COLUMN, table_name=table, fields=[addable]))
                continue

            steps.append(
                MigrationStep(
                    kind=StepKind.RESET,
                    table_name=table,
                    fields=desired,
                    description=str(delta.summary()),
                )
            )
            break

        return steps

    def _observe(self, connection: Connection, shape: RecordShape) -> list[LiveColumn] | None:
        try:
            return live_columns(connection, shape.table_name)
        except DBAPIError as e:
            raise SchemaChangeError.from_exception(e) from e

    def plan(self, record_type: type, connection: Connection) -> list[MigrationStep]:
        """Dry run: the steps :meth:`reconcile` would execute right now."""
        shape = describe(record_type)
        return self.plan_for(shape, self._observe(connection, shape))

    def reconcile(self, record_type: type, connection: Connection) -> ReconcileResult:
        """Migrate the record type's table to its current shape.

        A table that already matches runs no DDL.

        Raises:
            ConfigurationError: If the record type is invalid
            DestructiveMigrationError: If only a reset would work and resets are disabled
            SchemaChangeError: If the engine rejects a DDL step
        """
        shape = describe(record_type)
        live = self._observe(connection, shape)
        steps = self.plan_for(shape, live)

        if not self.allow_destructive and any(s.destructive for s in steps):
            delta = compute_delta(list(shape.fields.values()), live or [])
            raise DestructiveMigrationError(shape.table_name, delta.summary())

        for step in steps:
            self._apply(connection, step)
        return ReconcileResult(table_name=shape.table_name, steps=steps)

    def _apply(self, connection: Connection, step: MigrationStep) -> None:
        table = step.table_name
        if step.kind == StepKind.CREATE:
            logger.info(f"Creating table '{table}'")
            statements = [create_table_sql(table, step.fields)]
        elif step.kind == StepKind.ADD_COLUMN:
            logger.info(f"Adding column '{step.fields[0].name}' to '{table}'")
            statements = [f"ALTER TABLE {quote(table)} ADD COLUMN {step.fields[0].sql}"]
        elif step.kind == StepKind.REBUILD:
            logger.info(f"Rebuilding table '{table}': {step.description}")
            temp = TEMP_PREFIX + table
            columns = ", ".join(quote(f.name) for f in step.fields)
            statements = [
                f"DROP TABLE IF EXISTS {quote(temp)}",
                create_table_sql(temp, step.fields),
                f"INSERT INTO {quote(temp)} ({columns}) SELECT {columns} FROM {quote(table)}",
                f"DROP TABLE {quote(table)}",
                f"ALTER TABLE {quote(temp)} RENAME TO {quote(table)}",
            ]
        else:
            logger.warning(
                f"Dropping and recreating table '{table}'; existing rows are discarded. "
                f"Pending changes: {step.description}"
            )
            statements = [f"DROP TABLE IF EXISTS {quote(table)}", create_table_sql(table, step.fields)]

        try:
            with connection.begin():
                for sql in statements:
                    connection.execute(text(sql))
        except DBAPIError as e:
            logger.error(f"Migration step {step.kind} on '{table}' failed: {e}")
            raise SchemaChangeError.from_exception(e) from e
