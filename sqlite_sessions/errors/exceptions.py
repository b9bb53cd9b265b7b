"""
Exception classes for the SQLite session store.

Every failure the store reports is a SessionStoreError. The subclasses
name the failure category so callers can catch exactly what they can
handle; each carries the ErrorCode (and from it the HTTP status) that
the FastAPI handlers put on the wire.
"""

import sqlite3
from typing import Any, Optional

from sqlite_sessions.errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Error with a code, an HTTP status and optional structured details.

    ``status_code`` defaults to the status mapped to ``error_code``.
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """The JSON-ready form: error_code, message and (when set) details."""
        data: dict[str, Any] = {"error_code": self.error_code.value, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.error_code.value}: {self.message!r})"


class SessionStoreError(AppException):
    """Base class for every error raised by a session store."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(error_code=self.error_code, message=message, details=details)


class InvalidConfigurationError(SessionStoreError):
    """A store option (journal mode, synchronous mode, table name) is invalid."""

    error_code = ErrorCode.INVALID_CONFIGURATION


class InvalidTableNameError(InvalidConfigurationError):
    """The configured table name is not a safe SQL identifier."""


class StoreOpenError(SessionStoreError):
    """The backing database could not be opened or initialised."""

    error_code = ErrorCode.STORE_OPEN_FAILED


class StatementExecutionError(SessionStoreError):
    """
    A statement failed inside SQLite.

    ``retryable`` is set when SQLite reported lock contention, which is the
    one execution failure a caller can reasonably retry.
    """

    error_code = ErrorCode.STATEMENT_FAILED

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        retryable: bool = False
    ):
        super().__init__(message, details)
        self.retryable = retryable


class StoreClosedError(SessionStoreError):
    """An operation was attempted after the store was closed."""

    error_code = ErrorCode.STORE_CLOSED


class SessionEncodeError(SessionStoreError):
    """The serializer could not encode a session value."""

    error_code = ErrorCode.SESSION_ENCODE_FAILED


class SessionDecodeError(SessionStoreError):
    """A stored payload could not be decoded by the serializer."""

    error_code = ErrorCode.SESSION_DECODE_FAILED


class StoreCleanupError(SessionStoreError):
    """Backing files could not be removed."""

    error_code = ErrorCode.STORE_CLEANUP_FAILED


_LOCK_MARKERS = ("database is locked", "database table is locked", "database is busy")


def statement_error(operation: str, exc: Exception) -> StatementExecutionError:
    """
    Wrap a sqlite3 error raised while running a store operation.

    OverflowError from binding an integer outside the SQLite INTEGER
    range is wrapped the same way.

    Args:
        operation: Name of the store operation (e.g. "get", "clear")
        exc: The original sqlite3 (or OverflowError) exception

    Returns:
        A StatementExecutionError flagged retryable for lock contention
    """
    text = str(exc)
    retryable = isinstance(exc, sqlite3.OperationalError) and any(
        marker in text.lower() for marker in _LOCK_MARKERS
    )
    return StatementExecutionError(
        f"Session store {operation} failed: {text}",
        details={"operation": operation, "sqlite_error": type(exc).__name__},
        retryable=retryable,
    )
