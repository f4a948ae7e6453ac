"""CLI context management for database connections and shared state."""

import os
from dataclasses import dataclass, field

from rowshape import Database

DEFAULT_DATABASE_URL = "sqlite:///./rowshape.db"


def get_database_url(url: str | None) -> str:
    """Resolve database URL from CLI arg, environment variable, or default.

    Priority:
    1. Explicit URL argument
    2. ROWSHAPE_URL environment variable
    3. Default: sqlite:///./rowshape.db
    """
    if url:
        return url
    if env_url := os.getenv("ROWSHAPE_URL"):
        return env_url
    return DEFAULT_DATABASE_URL


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Manages database lifecycle and output preferences.
    """

    database_url: str
    echo: bool
    json_output: bool
    _db: Database | None = field(default=None, init=False, repr=False)

    def get_db(self, allow_destructive: bool = True) -> Database:
        """Get or create the database (lazy initialization)."""
        if self._db is None or self._db.allow_destructive != allow_destructive:
            self.close()
            self._db = Database(
                self.database_url,
                echo=self.echo,
                allow_destructive=allow_destructive,
            )
        return self._db

    def close(self) -> None:
        """Close database if open."""
        if self._db is not None:
            self._db.close()
            self._db = None
