"""
Lifecycle of the SQLite connection behind a session store.

One ConnectionManager owns one connection: it opens it, applies the
journal and synchronous pragmas before any schema work, closes it
(also at interpreter exit) and removes the backing files on request.
"""

import atexit
import logging
import os
import sqlite3
import threading
from typing import List, Optional

from sqlite_sessions.errors.exceptions import (
    InvalidConfigurationError,
    StoreCleanupError,
    StoreClosedError,
    StoreOpenError,
)

logger = logging.getLogger(__name__)

MEMORY_MARKER = ":memory:"
DEFAULT_FILENAME = "sessions.sqlite3"

JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")
SYNCHRONOUS_MODES = ("OFF", "NORMAL", "FULL", "EXTRA")

# Files SQLite may create next to the database, depending on journal mode
SIDECAR_SUFFIXES = ("-journal", "-wal", "-shm")


def _normalize_mode(option: str, value: str, allowed: tuple) -> str:
    mode = str(value).strip().upper()
    if mode not in allowed:
        raise InvalidConfigurationError(
            f"Invalid {option} {value!r}: expected one of {', '.join(allowed)}",
            details={"field": option, "value": str(value)},
        )
    return mode


class ConnectionManager:
    """
    Owns the SQLite connection of one store instance.

    The connection is opened with ``check_same_thread=False`` so the
    garbage collector thread can use it; every user of the connection
    must hold ``lock`` while executing statements and reading results.

    Attributes:
        dir: Directory of the database file
        filename: Configured file name (may contain ``:memory:``)
        db_path: Normalized path handed to sqlite3, or ``:memory:``
        journal_mode: Upper-cased PRAGMA journal_mode value
        synchronous: Upper-cased PRAGMA synchronous value
        lock: Re-entrant lock serialising access to the connection
    """

    def __init__(
        self,
        dir: Optional[str] = None,
        filename: str = DEFAULT_FILENAME,
        journal_mode: str = "WAL",
        synchronous: str = "NORMAL",
        timeout: float = 5.0,
    ):
        self.dir = dir or os.getcwd()
        self.filename = filename
        self.journal_mode = _normalize_mode("journal_mode", journal_mode, JOURNAL_MODES)
        self.synchronous = _normalize_mode("synchronous", synchronous, SYNCHRONOUS_MODES)
        self.timeout = timeout
        self.in_memory = MEMORY_MARKER in filename
        if self.in_memory:
            self.db_path = MEMORY_MARKER
        else:
            self.db_path = os.path.normpath(os.path.join(self.dir, filename))
        self.lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def connection(self) -> sqlite3.Connection:
        """
        The open connection.

        Raises:
            StoreClosedError: If the connection was never opened or is closed.
        """
        if self._conn is None:
            raise StoreClosedError(
                "Session store is closed",
                details={"db_path": self.db_path},
            )
        return self._conn

    def open(self) -> sqlite3.Connection:
        """
        Open the connection and apply the durability pragmas.

        Calling ``open`` on an already open manager returns the existing
        connection.

        Raises:
            StoreOpenError: If SQLite cannot open the file or reject a pragma.
        """
        with self.lock:
            if self._conn is not None:
                return self._conn

            conn = None
            try:
                conn = sqlite3.connect(
                    self.db_path,
                    timeout=self.timeout,
                    check_same_thread=False,
                    isolation_level=None,
                )
                conn.execute(f"PRAGMA journal_mode = {self.journal_mode}")
                conn.execute(f"PRAGMA synchronous = {self.synchronous}")
            except sqlite3.Error as exc:
                if conn is not None:
                    conn.close()
                raise StoreOpenError(
                    f"Failed to open session database at {self.db_path}: {exc}",
                    details={"db_path": self.db_path},
                ) from exc

            self._conn = conn
            atexit.register(self.close)

        logger.info(
            "Session database opened",
            extra={"extra_data": {
                "db_path": self.db_path,
                "journal_mode": self.journal_mode,
                "synchronous": self.synchronous,
            }}
        )
        return conn

    def pragma(self, name: str):
        """Return the current value of a PRAGMA (e.g. ``journal_mode``)."""
        with self.lock:
            row = self.connection.execute(f"PRAGMA {name}").fetchone()
        return row[0] if row else None

    def close(self) -> None:
        """Close the connection. Safe to call any number of times."""
        with self.lock:
            if self._conn is None:
                return
            conn, self._conn = self._conn, None
            atexit.unregister(self.close)
            conn.close()
        logger.debug("Session database closed", extra={"extra_data": {"db_path": self.db_path}})

    def backing_files(self) -> List[str]:
        """Paths of the database file and every sidecar it may have."""
        if self.in_memory:
            return []
        return [self.db_path] + [self.db_path + suffix for suffix in SIDECAR_SUFFIXES]

    def delete_backing_files(self) -> List[str]:
        """
        Close the connection and remove the database and sidecar files.

        Missing files are skipped.

        Returns:
            The paths that were actually removed.

        Raises:
            StoreCleanupError: If a file exists but cannot be removed.
        """
        self.close()
        removed = []
        for path in self.backing_files():
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StoreCleanupError(
                    f"Failed to remove {path}: {exc}",
                    details={"path": path, "errno": exc.errno},
                ) from exc
            removed.append(path)

        if removed:
            logger.info("Session database files deleted", extra={"extra_data": {"files": removed}})
        return removed
