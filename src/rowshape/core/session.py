"""Per-thread sessions: one connection, one statement cache."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import text

from rowshape.core.connection import storage_errors
from rowshape.core.types import LiveColumn, MigrationStep, Operation, ReconcileResult
from rowshape.data.codec import RowCursor, RowDecoder
from rowshape.data.statements import StatementCache
from rowshape.exceptions import MixedBatchError, RowNotFoundError
from rowshape.schema.descriptors import describe
from rowshape.schema.reconciler import live_columns

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from rowshape.core.locking import ReadWriteLock
    from rowshape.schema.reconciler import SchemaReconciler

logger = logging.getLogger(__name__)

R = TypeVar("R")


class Session:
    """Runs record operations on one connection.

    Every mutation (insert, delete, reconciliation) holds the shared lock
    exclusively for the whole batch; reads hold it in shared mode. A session
    must only be used by the thread that owns it.
    """

    def __init__(
        self,
        connection: Connection,
        lock: ReadWriteLock,
        reconciler: SchemaReconciler,
        exclusive_reads: bool = False,
    ) -> None:
        """Initialize session.

        Args:
            connection: Connection owned by this session
            lock: Lock shared by all sessions of the database
            reconciler: Schema reconciler used on the write path
            exclusive_reads: Take the lock exclusively for reads too
                (needed when sessions share one connection)
        """
        self._connection = connection
        self._lock = lock
        self._reconciler = reconciler
        self._read_lock = lock.write if exclusive_reads else lock.read
        self._statements = StatementCache()
        self._closed = False

    @property
    def statements(self) -> StatementCache:
        return self._statements

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_table(self, record_type: type) -> ReconcileResult:
        # Caller holds the write lock.
        result = self._reconciler.reconcile(record_type, self._connection)
        if result.changed:
            self._statements.invalidate(result.table_name)
        return result

    # === Schema ===

    def reconcile(self, record_type: type) -> ReconcileResult:
        """Migrate the record type's table to match the record shape."""
        describe(record_type)
        with self._lock.write():
            return self._ensure_table(record_type)

    def plan(self, record_type: type) -> list[MigrationStep]:
        """Steps ``reconcile`` would run, without running them."""
        describe(record_type)
        with self._read_lock():
            return self._reconciler.plan(record_type, self._connection)

    def tables(self) -> list[str]:
        """Names of the tables in the database."""
        with self._read_lock(), storage_errors(), self._connection.begin():
            rows = self._connection.execute(
                text("SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name")
            )
            return [row[0] for row in rows]

    def columns(self, table_name: str) -> list[LiveColumn] | None:
        """Live columns of a table, or None if it does not exist."""
        with self._read_lock(), storage_errors():
            return live_columns(self._connection, table_name)

    # === Records ===

    def insert(self, *records: Any) -> int:
        """Insert or replace records. See :meth:`insert_many`."""
        return self.insert_many(records)

    def insert_many(self, records: Iterable[Any]) -> int:
        """Insert or replace a batch of records of one type.

        The table is created or migrated first if the record shape changed.
        A record whose primary key already exists replaces the stored row.

        Returns:
            Number of records written
        """
        batch = list(records)
        if not batch:
            return 0
        record_type = type(batch[0])
        for record in batch:
            if type(record) is not record_type:
                raise MixedBatchError(record_type, type(record))
        describe(record_type)

        with self._lock.write(), storage_errors():
            self._ensure_table(record_type)
            query = self._statements.prepare(record_type, Operation.INSERT)
            bindings = []
            for record in batch:
                encoder = query.encoder()
                encoder.encode(record)
                bindings.append(encoder.bindings)
            with self._connection.begin():
                query.execute(self._connection, bindings)
        return len(batch)

    def delete(self, record_type: type, *keys: Any) -> int:
        """Delete records by primary key. See :meth:`delete_many`."""
        return self.delete_many(record_type, keys)

    def delete_many(self, record_type: type, keys: Iterable[Any]) -> int:
        """Delete records by primary key. Unknown keys are ignored.

        Returns:
            Number of keys processed
        """
        keys = list(keys)
        if not keys:
            return 0
        shape = describe(record_type)

        with self._lock.write(), storage_errors():
            query = self._statements.prepare(record_type, Operation.DELETE)
            bindings = []
            for key in keys:
                encoder = query.encoder()
                encoder.child(shape.primary_key).encode(key)
                bindings.append(encoder.bindings)
            with self._connection.begin():
                query.execute(self._connection, bindings)
        return len(keys)

    def get(self, record_type: type[R], key: Any) -> R | None:
        """Fetch one record by primary key, or None if there is no such row."""
        shape = describe(record_type)

        with self._read_lock(), storage_errors():
            query = self._statements.prepare(record_type, Operation.GET)
            encoder = query.encoder()
            encoder.child(shape.primary_key).encode(key)
            with self._connection.begin():
                cursor = RowCursor(query.execute(self._connection, encoder.bindings))
                try:
                    cursor.step()
                    return RowDecoder(cursor).decode(record_type)
                except RowNotFoundError:
                    return None
                finally:
                    cursor.close()

    def get_all(self, record_type: type[R]) -> list[R]:
        """Fetch every record of a type, in the order the table yields them."""
        describe(record_type)

        with self._read_lock(), storage_errors():
            query = self._statements.prepare(record_type, Operation.GET_ALL)
            with self._connection.begin():
                cursor = RowCursor(query.execute(self._connection))
                try:
                    return RowDecoder(cursor).decode(list[record_type])  # type: ignore[valid-type]
                finally:
                    cursor.close()

    def close(self) -> None:
        """Release the statements and the connection."""
        if self._closed:
            return
        self._statements.clear()
        self._connection.close()
        self._closed = True
