"""Main rowshape entry point."""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, TypeVar

from rowshape.core.connection import DatabaseConnection
from rowshape.core.locking import ReadWriteLock, lock_for
from rowshape.core.session import Session
from rowshape.schema.descriptors import RecordShape, describe
from rowshape.schema.reconciler import SchemaReconciler

if TYPE_CHECKING:
    from sqlalchemy.engine.url import URL

    from rowshape.core.types import LiveColumn, MigrationStep, ReconcileResult

logger = logging.getLogger(__name__)

R = TypeVar("R")


def _release(registry: weakref.ref[Database], session: Session) -> None:
    session.close()
    database = registry()
    if database is not None:
        database._forget(session)


class _SessionSlot:
    """Thread-local holder of a session.

    The slot dies with its thread (or when replaced), and its finalizer
    closes the session.
    """

    def __init__(self, database: Database, session: Session) -> None:
        self.session = session
        self.release = weakref.finalize(self, _release, weakref.ref(database), session)


class Database:
    """Registry of sessions for one SQLite database.

    Each thread gets its own :class:`Session` (and so its own connection)
    the first time it calls :meth:`session`, closed again when that thread
    ends. Every Database opened on the same file shares one readers-writer
    lock; pass ``lock`` to coordinate differently.

    Example:
        @dataclass
        class Note:
            __primary_key__: ClassVar[str] = "key"
            key: str
            body: str | None = None

        with Database("sqlite:///notes.db") as db:
            db.insert(Note("a", "hello"))
            note = db.get(Note, "a")
    """

    def __init__(
        self,
        url: str | URL,
        echo: bool = False,
        allow_destructive: bool = True,
        lock: ReadWriteLock | None = None,
    ) -> None:
        """Initialize the database.

        Args:
            url: SQLite URL or file path
            echo: Whether to echo SQL statements (for debugging)
            allow_destructive: Whether migrations may drop and recreate a
                table when no data-preserving path exists
            lock: Lock to coordinate with. Defaults to the process-wide lock
                of the database file, shared by every Database opened on it
        """
        self._connection = DatabaseConnection(url, echo=echo)
        if lock is None:
            key = self._connection.lock_key
            lock = lock_for(key) if key is not None else ReadWriteLock()
        self._lock = lock
        self._reconciler = SchemaReconciler(allow_destructive=allow_destructive)
        self._local = threading.local()
        self._sessions: list[Session] = []
        self._sessions_lock = threading.RLock()
        self._closed = False

    @property
    def url(self) -> str:
        return self._connection.url

    @property
    def lock(self) -> ReadWriteLock:
        return self._lock

    @property
    def allow_destructive(self) -> bool:
        return self._reconciler.allow_destructive

    @property
    def open_sessions(self) -> int:
        """Number of sessions not yet closed."""
        with self._sessions_lock:
            return len(self._sessions)

    def open_session(self) -> Session:
        """Open a new session with its own connection.

        The caller owns the session; it is also closed together with the
        database.
        """
        if self._closed:
            raise RuntimeError("Database is closed")
        session = Session(
            self._connection.connect(),
            self._lock,
            self._reconciler,
            exclusive_reads=self._connection.is_memory,
        )
        with self._sessions_lock:
            self._sessions.append(session)
        return session

    def session(self) -> Session:
        """The calling thread's session, opened on first use.

        The session is closed when the thread ends.
        """
        slot: _SessionSlot | None = getattr(self._local, "slot", None)
        if slot is None or slot.session.closed:
            slot = _SessionSlot(self, self.open_session())
            self._local.slot = slot
        return slot.session

    def release_session(self) -> None:
        """Close the calling thread's session, if any."""
        slot: _SessionSlot | None = getattr(self._local, "slot", None)
        if slot is None:
            return
        self._local.slot = None
        slot.release()

    def _forget(self, session: Session) -> None:
        with self._sessions_lock:
            if session in self._sessions:
                self._sessions.remove(session)

    # === Schema ===

    def describe(self, record_type: type) -> RecordShape:
        """Shape derived from a record type (fields, table, primary key)."""
        return describe(record_type)

    def reconcile(self, record_type: type) -> ReconcileResult:
        return self.session().reconcile(record_type)

    def plan(self, record_type: type) -> list[MigrationStep]:
        return self.session().plan(record_type)

    def list_tables(self) -> list[str]:
        return self.session().tables()

    def columns(self, table_name: str) -> list[LiveColumn] | None:
        return self.session().columns(table_name)

    # === Records ===

    def insert(self, *records: Any) -> int:
        return self.session().insert_many(records)

    def insert_many(self, records: Iterable[Any]) -> int:
        return self.session().insert_many(records)

    def delete(self, record_type: type, *keys: Any) -> int:
        return self.session().delete_many(record_type, keys)

    def delete_many(self, record_type: type, keys: Iterable[Any]) -> int:
        return self.session().delete_many(record_type, keys)

    def get(self, record_type: type[R], key: Any) -> R | None:
        return self.session().get(record_type, key)

    def get_all(self, record_type: type[R]) -> list[R]:
        return self.session().get_all(record_type)

    def close(self) -> None:
        """Close every session and dispose of the engine."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._connection.close()
        self._closed = True
        logger.debug(f"Closed database {self.url} ({len(sessions)} session(s))")

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
