"""
Expiring session storage on SQLite.

This package provides the session store contract and its SQLite
implementation, along with the schema, connection lifecycle, garbage
collector and serializers it is built from.
"""

from sqlite_sessions.session.store import ONE_DAY_MS, SessionStore
from sqlite_sessions.session.serializers import JSONSerializer, Serializer
from sqlite_sessions.session.sqlite_store import SQLiteSessionStore

__all__ = [
    "SessionStore",
    "SQLiteSessionStore",
    "Serializer",
    "JSONSerializer",
    "ONE_DAY_MS",
]
