"""
Error code catalog for the SQLite session store.

Every failure the store can report carries one of these codes so that a
caller can tell an open/configuration problem from a statement failure,
a corrupt payload or a cleanup failure, and decide whether to retry.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the store and its HTTP layer.

    Categories:
    - Configuration errors: invalid options, backing file cannot be opened
    - Execution errors: SQLite statement failures, use after close
    - Payload errors: serializer cannot encode or decode a session value
    - Cleanup errors: backing files cannot be removed
    """

    # Configuration errors
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    """A store option failed validation (HTTP 500)"""

    STORE_OPEN_FAILED = "STORE_OPEN_FAILED"
    """The database file could not be opened or initialised (HTTP 503)"""

    # Execution errors
    STATEMENT_FAILED = "STATEMENT_FAILED"
    """A SQL statement failed: I/O error, lock contention, corruption (HTTP 503)"""

    STORE_CLOSED = "STORE_CLOSED"
    """An operation was attempted on a closed store (HTTP 503)"""

    # Payload errors
    SESSION_ENCODE_FAILED = "SESSION_ENCODE_FAILED"
    """The session value could not be serialized (HTTP 400)"""

    SESSION_DECODE_FAILED = "SESSION_DECODE_FAILED"
    """A stored payload could not be deserialized (HTTP 500)"""

    # Cleanup errors
    STORE_CLEANUP_FAILED = "STORE_CLEANUP_FAILED"
    """Backing files could not be removed (HTTP 500)"""

    # Generic
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.INVALID_CONFIGURATION: 500,
    ErrorCode.STORE_OPEN_FAILED: 503,
    ErrorCode.STATEMENT_FAILED: 503,
    ErrorCode.STORE_CLOSED: 503,
    ErrorCode.SESSION_ENCODE_FAILED: 400,
    ErrorCode.SESSION_DECODE_FAILED: 500,
    ErrorCode.STORE_CLEANUP_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
