"""Database connection management for rowshape."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import Connection, Engine, create_engine, event, make_url, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import NullPool, StaticPool

from rowshape.exceptions import ConnectionError, StorageError

if TYPE_CHECKING:
    from sqlalchemy.engine.url import URL

logger = logging.getLogger(__name__)


def normalize_sqlite_url(url: str) -> str:
    """Normalize a SQLite URL or bare file path.

    Supports:
    - sqlite:///path/to/db.sqlite
    - sqlite:///:memory: and sqlite://
    - path/to/db.sqlite (converted to sqlite:///path/to/db.sqlite)

    Args:
        url: Database URL or file path

    Returns:
        Normalized URL
    """
    if "://" in url:
        return url
    if url == ":memory:":
        return "sqlite://"
    return f"sqlite:///{url}"


def is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


@contextmanager
def storage_errors() -> Iterator[None]:
    """Re-raise driver errors as StorageError with the engine's code."""
    try:
        yield
    except DBAPIError as e:
        raise StorageError.from_exception(e) from e


def _configure_sqlite(dbapi_connection: Any, connection_record: Any) -> None:
    # Let SQLAlchemy emit BEGIN itself so DDL runs inside transactions.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


def _begin(conn: Connection) -> None:
    conn.exec_driver_sql("BEGIN")


class DatabaseConnection:
    """Manages the SQLite engine behind a database.

    File databases get a fresh DBAPI connection per ``connect()`` call, so
    every session owns its own connection. In-memory databases share one
    static connection, since each new connection would see an empty database.
    """

    SUPPORTED_DIALECTS = ("sqlite",)

    def __init__(self, url: str | URL, echo: bool = False) -> None:
        """Initialize database connection.

        Args:
            url: SQLite URL ("sqlite:///path/to/db.sqlite", "sqlite:///:memory:")
                 or a bare file path
            echo: Whether to echo SQL statements (for debugging)
        """
        self._url = normalize_sqlite_url(str(url))
        self._echo = echo
        self._engine: Engine | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_memory(self) -> bool:
        return is_memory_url(self._url)

    @property
    def lock_key(self) -> str | None:
        """Resolved path of the database file, or None for in-memory databases."""
        if self.is_memory or not self._url.startswith("sqlite"):
            return None
        database = make_url(self._url).database
        if not database:
            return None
        return os.path.realpath(database)

    @property
    def engine(self) -> Engine:
        """Get or create the SQLAlchemy engine."""
        if self._engine is None:
            if not self._url.startswith("sqlite"):
                dialect = self._url.split(":", 1)[0]
                raise ConnectionError(
                    f"Unsupported database dialect: {dialect}. "
                    f"Supported: {', '.join(self.SUPPORTED_DIALECTS)}"
                )
            try:
                engine = create_engine(
                    self._url,
                    echo=self._echo,
                    poolclass=StaticPool if self.is_memory else NullPool,
                    connect_args={"check_same_thread": False},
                )
            except Exception as e:
                raise ConnectionError(f"Failed to create database engine: {e}") from e

            event.listen(engine, "connect", _configure_sqlite)
            event.listen(engine, "begin", _begin)
            self._engine = engine
            logger.debug(f"Created engine for {self._url}")
        return self._engine

    def connect(self) -> Connection:
        """Open a new connection.

        Raises:
            ConnectionError: If the database file cannot be opened
        """
        try:
            return self.engine.connect()
        except DBAPIError as e:
            raise ConnectionError(f"Failed to open database {self._url}: {e}") from e

    def test_connection(self) -> bool:
        """Test if the database connection works.

        Raises:
            ConnectionError: If connection test fails
        """
        try:
            with self.connect() as conn, conn.begin():
                conn.execute(text("SELECT 1"))
            return True
        except DBAPIError as e:
            raise ConnectionError(f"Database connection test failed: {e}") from e

    def close(self) -> None:
        """Dispose of the engine."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> DatabaseConnection:
        self.test_connection()
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
