"""Prepared statements per (record type, operation)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import TextClause, text

from rowshape.core.types import Operation, quote
from rowshape.data.codec import RowEncoder
from rowshape.schema.descriptors import RecordShape, describe

if TYPE_CHECKING:
    from sqlalchemy import Connection, CursorResult

logger = logging.getLogger(__name__)


def build_sql(shape: RecordShape, operation: Operation) -> tuple[str, frozenset[str]]:
    """SQL text and parameter names for one operation on a record's table."""
    table = quote(shape.table_name)
    key = shape.primary_key

    if operation == Operation.INSERT:
        columns = shape.column_names
        column_list = ", ".join(quote(c) for c in columns)
        placeholders = ", ".join(f":{c}" for c in columns)
        return f"INSERT OR REPLACE INTO {table} ({column_list}) VALUES ({placeholders})", frozenset(columns)
    if operation == Operation.DELETE:
        return f"DELETE FROM {table} WHERE {quote(key)} = :{key}", frozenset([key])
    if operation == Operation.GET:
        return f"SELECT * FROM {table} WHERE {quote(key)} = :{key}", frozenset([key])
    if operation == Operation.GET_ALL:
        return f"SELECT * FROM {table}", frozenset()
    raise ValueError(f"Unknown operation: {operation}")


@dataclass(frozen=True)
class PreparedQuery:
    """A compiled statement for one record type and operation."""

    shape: RecordShape
    operation: Operation
    sql: str
    parameters: frozenset[str]
    statement: TextClause

    @property
    def table_name(self) -> str:
        return self.shape.table_name

    def encoder(self) -> RowEncoder:
        """Fresh root frame for binding one execution's parameters."""
        return RowEncoder(self.parameters)

    def execute(self, connection: Connection, bindings: dict[str, Any] | list[dict[str, Any]] | None = None) -> CursorResult[Any]:
        return connection.execute(self.statement, bindings or {})


class StatementCache:
    """Owns the prepared statements of one session.

    Entries live until the owning session closes or the table behind them
    is changed by the reconciler.
    """

    def __init__(self) -> None:
        self._queries: dict[tuple[type, Operation], PreparedQuery] = {}

    def prepare(self, record_type: type, operation: Operation) -> PreparedQuery:
        """Get the cached statement, building it on first use."""
        cache_key = (record_type, operation)
        query = self._queries.get(cache_key)
        if query is None:
            shape = describe(record_type)
            sql, parameters = build_sql(shape, operation)
            query = PreparedQuery(
                shape=shape,
                operation=operation,
                sql=sql,
                parameters=parameters,
                statement=text(sql),
            )
            self._queries[cache_key] = query
            logger.debug(f"Prepared {operation} for {record_type.__qualname__}: {sql}")
        return query

    def invalidate(self, table_name: str) -> int:
        """Drop every statement that targets ``table_name``.

        Returns:
            Number of statements dropped
        """
        stale = [k for k, q in self._queries.items() if q.table_name == table_name]
        for cache_key in stale:
            del self._queries[cache_key]
        if stale:
            logger.debug(f"Invalidated {len(stale)} statement(s) for table '{table_name}'")
        return len(stale)

    def clear(self) -> None:
        self._queries.clear()

    def __len__(self) -> int:
        return len(self._queries)

    def __contains__(self, cache_key: object) -> bool:
        return cache_key in self._queries
