"""
Structured JSON logging for the session store.
"""

from sqlite_sessions.telemetry.service import (
    JSONFormatter,
    configure_logging,
    session_id_var,
)

__all__ = [
    "JSONFormatter",
    "configure_logging",
    "session_id_var",
]
