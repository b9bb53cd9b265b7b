"""
SQLite-backed session store.

Sessions live in a single table of ``(id, expires_at, data)`` rows. A
row is visible while ``expires_at >= now``; the check is made in SQL on
every call, so expired sessions disappear from get/length/all even
before the background garbage collector deletes them.

Example:
    with SQLiteSessionStore(filename=":memory:") as store:
        store.set("sid", {"user": 1, "cookie": {"maxAge": 3_600_000}})
        store.get("sid")                    # {"user": 1, ...}
        store.length(lambda err, n: print(n))
"""

import logging
import sqlite3
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence, Union

from sqlite_sessions.errors.exceptions import (
    SessionDecodeError,
    SessionEncodeError,
    SessionStoreError,
    StoreOpenError,
    statement_error,
)
from sqlite_sessions.session.connection import DEFAULT_FILENAME, ConnectionManager
from sqlite_sessions.session.gc import GarbageCollector
from sqlite_sessions.session.schema import DEFAULT_TABLE, SchemaManager, StatementSet
from sqlite_sessions.session.serializers import JSONSerializer, Serializer
from sqlite_sessions.session.store import ONE_DAY_MS, Callback, SessionStore, complete

if TYPE_CHECKING:
    from sqlite_sessions.config.settings import StoreSettings

logger = logging.getLogger(__name__)

Params = Union[Sequence[Any], Mapping]

# Range of values SQLite stores in an INTEGER column
MIN_EXPIRES_AT = -(2**63)
MAX_EXPIRES_AT = 2**63 - 1


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SQLiteSessionStore(SessionStore):
    """
    Expiring session store on a single SQLite connection.

    The constructor opens the database, applies the pragmas, creates the
    table if needed and starts the garbage collector; ``close()`` undoes
    all of it. The store is also a context manager.

    Args:
        dir: Directory of the database file (default: working directory)
        filename: File name; ``":memory:"`` keeps everything in memory
        table: Table name, validated as a plain SQL identifier
        ttl: Default time-to-live in milliseconds
        serializer: Object with ``encode``/``decode`` (default: JSON)
        journal_mode: PRAGMA journal_mode (default: WAL)
        synchronous: PRAGMA synchronous (default: NORMAL)
        gc_interval: Milliseconds between GC sweeps; None means one day,
            0 disables the background sweep
        timeout: Seconds SQLite waits on a locked database
        clock: Callable returning epoch milliseconds (default: wall clock)

    Raises:
        InvalidConfigurationError: On an invalid table name or pragma value.
        StoreOpenError: If the database cannot be opened or initialised.
    """

    def __init__(
        self,
        dir: Optional[str] = None,
        filename: str = DEFAULT_FILENAME,
        table: str = DEFAULT_TABLE,
        ttl: int = ONE_DAY_MS,
        serializer: Optional[Serializer] = None,
        journal_mode: str = "WAL",
        synchronous: str = "NORMAL",
        gc_interval: Optional[int] = None,
        timeout: float = 5.0,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.schema = SchemaManager(table)
        self.statements = StatementSet.for_table(self.schema.table)
        self.ttl = ttl
        self.serializer = serializer or JSONSerializer()
        self._clock = clock or now_ms

        self._connection = ConnectionManager(
            dir=dir,
            filename=filename,
            journal_mode=journal_mode,
            synchronous=synchronous,
            timeout=timeout,
        )
        conn = self._connection.open()
        try:
            with self._connection.lock:
                self.schema.ensure_table(conn)
        except sqlite3.Error as exc:
            self._connection.close()
            raise StoreOpenError(
                f"Failed to create session table {self.table!r}: {exc}",
                details={"db_path": self.db_path, "table": self.table},
            ) from exc

        self._collector = GarbageCollector(
            self._delete_expired,
            self._clock,
            ONE_DAY_MS if gc_interval is None else gc_interval,
        )
        self._collector.start()

    @classmethod
    def from_settings(cls, settings: "StoreSettings", **overrides: Any) -> "SQLiteSessionStore":
        """Build a store from StoreSettings; keyword overrides win."""
        options = {
            "dir": settings.resolved_dir,
            "filename": settings.filename,
            "table": settings.table,
            "ttl": settings.ttl_ms,
            "journal_mode": settings.journal_mode,
            "synchronous": settings.synchronous,
            "gc_interval": settings.gc_interval_ms,
            "timeout": settings.busy_timeout_seconds,
        }
        options.update(overrides)
        return cls(**options)

    # Configuration, as resolved at construction

    @property
    def dir(self) -> str:
        return self._connection.dir

    @property
    def filename(self) -> str:
        return self._connection.filename

    @property
    def db_path(self) -> str:
        return self._connection.db_path

    @property
    def table(self) -> str:
        return self.schema.table

    @property
    def journal_mode(self) -> str:
        return self._connection.journal_mode

    @property
    def synchronous(self) -> str:
        return self._connection.synchronous

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def collector(self) -> GarbageCollector:
        return self._collector

    # Store contract

    def _get(self, session_id: str) -> Any:
        row = self._fetchone("get", self.statements.get_active, (session_id, self._clock()))
        if row is None:
            return None
        return self._decode(row[0], session_id)

    def _set(self, session_id: str, value: Any) -> None:
        expires_at = self._expiry_for(self._clock(), value)
        try:
            data = self.serializer.encode(value)
        except Exception as exc:
            raise SessionEncodeError(
                f"Failed to encode session {session_id!r}: {exc}",
                details={"session_id": session_id},
            ) from exc
        self._execute(
            "set",
            self.statements.upsert,
            {"id": session_id, "expires_at": expires_at, "data": data},
        )

    def _destroy(self, session_id: str) -> None:
        self._execute("destroy", self.statements.destroy, (session_id,))

    def _touch(self, session_id: str, value: Any) -> None:
        now = self._clock()
        self._execute("touch", self.statements.touch, (self._expiry_for(now, value), session_id, now))

    def _length(self) -> int:
        row = self._fetchone("length", self.statements.count_active, (self._clock(),))
        return row[0]

    def _all(self) -> List[Any]:
        rows = self._fetchall("all", self.statements.list_active, (self._clock(),))
        return [self._decode(row[0]) for row in rows]

    def _clear(self) -> None:
        with self._connection.lock:
            try:
                self.schema.recreate(self._connection.connection)
            except sqlite3.Error as exc:
                raise statement_error("clear", exc) from exc
        logger.info("Session table cleared", extra={"extra_data": {"table": self.table}})

    def health_check(self) -> bool:
        try:
            with self._connection.lock:
                return self.schema.table_exists(self._connection.connection)
        except (SessionStoreError, sqlite3.Error):
            return False

    # Garbage collection

    def gc(self) -> int:
        """Delete expired rows now. Returns how many were removed."""
        return self._collector.sweep()

    def expires_at(self, session_id: str) -> Optional[int]:
        """Stored expiry of a row, expired or not; None if there is no row."""
        row = self._fetchone("expires_at", self.statements.expires_at, (session_id,))
        return None if row is None else row[0]

    def _expiry_for(self, now: int, value: Any) -> int:
        return max(MIN_EXPIRES_AT, min(now + self.get_ttl(value), MAX_EXPIRES_AT))

    def _delete_expired(self, now: int) -> int:
        return self._execute("gc", self.statements.gc, (now,))

    # Lifecycle

    def close(self) -> None:
        self._collector.stop()
        self._connection.close()

    def delete_database_file(self, callback: Optional[Callback] = None) -> Any:
        """
        Close the store and remove the database file and its sidecars.

        Missing files are not an error; any other removal failure is
        reported as StoreCleanupError.
        """
        def _delete() -> None:
            self._collector.stop()
            self._connection.delete_backing_files()

        return complete(callback, _delete)

    def __enter__(self) -> "SQLiteSessionStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SQLiteSessionStore(db_path={self.db_path!r}, table={self.table!r})"

    # Statement helpers

    def _execute(self, operation: str, sql: str, params: Params = ()) -> int:
        with self._connection.lock:
            conn = self._connection.connection
            try:
                return conn.execute(sql, params).rowcount
            except (sqlite3.Error, OverflowError) as exc:
                raise statement_error(operation, exc) from exc

    def _fetchone(self, operation: str, sql: str, params: Params = ()) -> Optional[tuple]:
        with self._connection.lock:
            conn = self._connection.connection
            try:
                return conn.execute(sql, params).fetchone()
            except (sqlite3.Error, OverflowError) as exc:
                raise statement_error(operation, exc) from exc

    def _fetchall(self, operation: str, sql: str, params: Params = ()) -> List[tuple]:
        with self._connection.lock:
            conn = self._connection.connection
            try:
                return conn.execute(sql, params).fetchall()
            except (sqlite3.Error, OverflowError) as exc:
                raise statement_error(operation, exc) from exc

    def _decode(self, data: Any, session_id: Optional[str] = None) -> Any:
        try:
            return self.serializer.decode(data)
        except Exception as exc:
            details = {"session_id": session_id} if session_id is not None else None
            raise SessionDecodeError(f"Failed to decode stored session: {exc}", details=details) from exc
