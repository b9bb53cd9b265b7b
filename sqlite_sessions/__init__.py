"""
SQLite-backed session store with per-record expiration.
"""

from sqlite_sessions.errors.exceptions import (
    InvalidConfigurationError,
    InvalidTableNameError,
    SessionDecodeError,
    SessionEncodeError,
    SessionStoreError,
    StatementExecutionError,
    StoreCleanupError,
    StoreClosedError,
    StoreOpenError,
)
from sqlite_sessions.session import (
    ONE_DAY_MS,
    JSONSerializer,
    Serializer,
    SessionStore,
    SQLiteSessionStore,
)

__version__ = "1.0.0"

__all__ = [
    "SQLiteSessionStore",
    "SessionStore",
    "Serializer",
    "JSONSerializer",
    "ONE_DAY_MS",
    "SessionStoreError",
    "InvalidConfigurationError",
    "InvalidTableNameError",
    "StoreOpenError",
    "StatementExecutionError",
    "StoreClosedError",
    "SessionEncodeError",
    "SessionDecodeError",
    "StoreCleanupError",
]
