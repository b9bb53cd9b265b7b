"""
Structured logging for the session store.

Every record is written as one JSON object per line. Records produced
while the session middleware serves a request carry that request's
session id; records from the garbage collector carry its thread name.
"""

import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Session id of the request being handled, set by SessionMiddleware
session_id_var: ContextVar[str] = ContextVar("session_id", default="")


class JSONFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON.

    Top-level keys are ``timestamp`` (UTC, ISO 8601 with ``Z``), ``level``,
    ``message``, ``logger`` and ``source`` (module, function, line). The
    ``thread`` key appears for records emitted off the main thread,
    ``session_id`` while a request is in flight, and ``exception`` when
    exc_info is attached. Keys in a record's ``extra_data`` dict are merged
    in last.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "source": {
                "module": record.module,
                "function": record.funcName,
                "line": record.lineno,
            },
        }

        if record.threadName and record.thread != threading.main_thread().ident:
            entry["thread"] = record.threadName

        session_id = session_id_var.get()
        if session_id:
            entry["session_id"] = session_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_trace"] = record.stack_info

        entry.update(getattr(record, "extra_data", None) or {})
        return json.dumps(entry, default=str)


def configure_logging(settings: Optional[Any] = None, stream=None) -> logging.Logger:
    """
    Route all logging through a single JSON handler on the root logger.

    Handlers already on the root logger are removed first, so calling this
    twice does not duplicate output.

    Args:
        settings: Anything with a ``log_level`` attribute, e.g. StoreSettings
        stream: Destination stream (stdout when omitted)

    Returns:
        The ``sqlite_sessions`` package logger
    """
    level_name = (getattr(settings, "log_level", None) or "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    root.setLevel(level)

    package_logger = logging.getLogger("sqlite_sessions")
    package_logger.debug("Logging configured", extra={"extra_data": {"log_level": level_name}})
    return package_logger
