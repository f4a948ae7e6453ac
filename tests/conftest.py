"""Shared test fixtures for rowshape."""

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import Connection

from rowshape import Database, Session
from rowshape.core.connection import DatabaseConnection


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path of a fresh SQLite file."""
    return tmp_path / "rowshape.sqlite"


@pytest.fixture
def db_url(db_path: Path) -> str:
    return f"sqlite:///{db_path}"


@pytest.fixture
def db(db_url: str) -> Generator[Database, None, None]:
    """A Database on a temporary file."""
    database = Database(db_url)
    yield database
    database.close()


@pytest.fixture
def safe_db(db_url: str) -> Generator[Database, None, None]:
    """A Database that refuses destructive migrations."""
    database = Database(db_url, allow_destructive=False)
    yield database
    database.close()


@pytest.fixture
def session(db: Database) -> Session:
    """The test thread's session."""
    return db.session()


@pytest.fixture
def connection(db_url: str) -> Generator[Connection, None, None]:
    """A raw connection configured like the ones sessions use."""
    conn = DatabaseConnection(db_url)
    connection = conn.connect()
    yield connection
    connection.close()
    conn.close()
