"""
Middleware components for applications using the session store.
"""

from sqlite_sessions.middleware.session import (
    DEFAULT_COOKIE_NAME,
    SessionMiddleware,
    generate_session_id,
)

__all__ = [
    "SessionMiddleware",
    "DEFAULT_COOKIE_NAME",
    "generate_session_id",
]
