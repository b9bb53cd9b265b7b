"""
Error handling for the SQLite session store.

This package provides:
- ErrorCode enum for standardized error codes
- AppException and the SessionStoreError hierarchy, one class per failure category
- Error response model and FastAPI exception handlers
"""

from sqlite_sessions.errors.codes import ErrorCode
from sqlite_sessions.errors.exceptions import (
    AppException,
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
from sqlite_sessions.errors.handlers import (
    ErrorResponse,
    handle_app_exception,
    handle_unexpected_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "SessionStoreError",
    "InvalidConfigurationError",
    "InvalidTableNameError",
    "StoreOpenError",
    "StatementExecutionError",
    "StoreClosedError",
    "SessionEncodeError",
    "SessionDecodeError",
    "StoreCleanupError",
    "ErrorResponse",
    "handle_app_exception",
    "handle_unexpected_exception",
    "register_exception_handlers",
]
