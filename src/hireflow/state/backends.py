"""SQL backend for the workflow record store.

Reservations must be atomic across processes sharing one database file, so
writes go through :meth:`DatabaseBackend.write`, which runs a single
statement under an immediate (write-locked) transaction and reports how many
rows it touched. Callers use the row count for insert-if-absent and
compare-and-set.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "hireflow-state.db"

# Seconds to wait for another process's write lock before failing
DEFAULT_BUSY_TIMEOUT = 1.0


class DatabaseBackend(ABC):
    """Minimal SQL surface used by the record store."""

    @abstractmethod
    def executescript(self, script: str) -> None:
        """Run DDL (schema creation)."""

    @abstractmethod
    def fetchone(self, query: str, params: tuple = ()) -> dict | None:
        """Execute query and fetch one row as dict."""

    @abstractmethod
    def fetchall(self, query: str, params: tuple = ()) -> list[dict]:
        """Execute query and fetch all rows as dicts."""

    @abstractmethod
    def write(self, query: str, params: tuple = ()) -> int:
        """Run one write statement atomically.

        Returns:
            Number of rows inserted, updated or deleted
        """

    @abstractmethod
    def close(self) -> None:
        """Close this thread's connection."""


class SQLiteBackend(DatabaseBackend):
    """SQLite backend with one connection per thread."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH, busy_timeout: float = DEFAULT_BUSY_TIMEOUT):
        """Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file
            busy_timeout: Seconds to wait on a lock held by another connection
        """
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self._local = threading.local()

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            # Autocommit; write() opens its own transactions
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return conn

    def executescript(self, script: str) -> None:
        self._get_conn().executescript(script)

    def fetchone(self, query: str, params: tuple = ()) -> dict | None:
        row = self._get_conn().execute(query, params).fetchone()
        return dict(row) if row else None

    def fetchall(self, query: str, params: tuple = ()) -> list[dict]:
        return [dict(row) for row in self._get_conn().execute(query, params).fetchall()]

    def write(self, query: str, params: tuple = ()) -> int:
        conn = self._get_conn()
        # Write lock is held from BEGIN until COMMIT
        conn.execute("BEGIN IMMEDIATE")
        try:
            rowcount = conn.execute(query, params).rowcount
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
        return rowcount

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None


def create_backend(url: str, busy_timeout: float = DEFAULT_BUSY_TIMEOUT) -> DatabaseBackend:
    """Create a backend from a database URL.

    Examples:
        >>> backend = create_backend("sqlite:///hireflow-state.db")
        >>> backend = create_backend("sqlite:////var/lib/hireflow/state.db", busy_timeout=0.5)

    Raises:
        ValueError: The URL scheme is not supported
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("sqlite", "sqlite3"):
        raise ValueError(f"Unsupported database scheme: {parsed.scheme}")

    path = parsed.path
    if path.startswith("/"):
        path = path[1:]
    logger.debug("Using SQLite database at %s", path or DEFAULT_DB_PATH)
    return SQLiteBackend(db_path=path or DEFAULT_DB_PATH, busy_timeout=busy_timeout)
