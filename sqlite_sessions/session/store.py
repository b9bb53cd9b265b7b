"""
Session store contract.

This module defines the interface a session-management layer consumes:
get, set, destroy, touch, length, all and clear, each taking an
optional trailing ``callback(error, result)``.

Completion is reported in one of two ways:

- with a callback, the callback is invoked exactly once, with
  ``(None, result)`` on success or ``(error, None)`` on failure, and the
  operation returns whatever the callback returns;
- without one, the operation returns the result or raises the error.
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, List, Optional, TypeVar

from sqlite_sessions.errors.exceptions import SessionStoreError

# One day in milliseconds
ONE_DAY_MS = 86_400_000

T = TypeVar("T")

Callback = Callable[[Optional[SessionStoreError], Any], Any]


def complete(callback: Optional[Callback], operation: Callable[[], T]) -> Any:
    """
    Run ``operation`` and report its outcome through ``callback``.

    Only SessionStoreError is routed to the callback; anything else is a
    bug and propagates. The callback runs outside the ``try`` block, so an
    exception raised by the callback itself is never fed back into it.

    Args:
        callback: Optional ``(error, result)`` continuation
        operation: Zero-argument callable doing the work

    Returns:
        The callback's return value, or the operation's result when no
        callback was given.

    Raises:
        SessionStoreError: If the operation fails and no callback was given.
    """
    try:
        result = operation()
    except SessionStoreError as exc:
        if callback is None:
            raise
        return callback(exc, None)
    if callback is None:
        return result
    return callback(None, result)


class SessionStore(ABC):
    """
    Abstract base class for session stores.

    Subclasses implement the underscored hooks; the public methods add the
    callback plumbing described in the module docstring.

    Attributes:
        ttl: Default time-to-live in milliseconds
    """

    ttl: int = ONE_DAY_MS

    def get_ttl(self, value: Any) -> int:
        """
        TTL in milliseconds for a session value.

        A non-zero finite number at ``value["cookie"]["maxAge"]`` (or
        ``max_age``) overrides the store default. A negative hint is used
        as given, so a cookie that has already lapsed is stored expired.
        """
        if isinstance(value, Mapping):
            cookie = value.get("cookie")
            if isinstance(cookie, Mapping):
                for key in ("maxAge", "max_age"):
                    max_age = cookie.get(key)
                    if isinstance(max_age, bool) or not isinstance(max_age, (int, float)):
                        continue
                    if math.isfinite(max_age) and max_age != 0:
                        return int(max_age)
        return self.ttl

    def get(self, session_id: str, callback: Optional[Callback] = None) -> Any:
        """
        Retrieve an active session's value.

        Returns:
            The decoded value, or None if no active session has this id.

        Raises:
            SessionDecodeError: If the stored payload cannot be decoded.
            StatementExecutionError: If the lookup fails.
        """
        return complete(callback, lambda: self._get(session_id))

    def set(self, session_id: str, value: Any, callback: Optional[Callback] = None) -> Any:
        """Store ``value`` under ``session_id``, replacing any existing session."""
        return complete(callback, lambda: self._set(session_id, value))

    def destroy(self, session_id: str, callback: Optional[Callback] = None) -> Any:
        """Delete a session whether or not it has expired. Idempotent."""
        return complete(callback, lambda: self._destroy(session_id))

    def touch(self, session_id: str, value: Any = None, callback: Optional[Callback] = None) -> Any:
        """Push back the expiry of an active session. Never creates one."""
        return complete(callback, lambda: self._touch(session_id, value))

    def length(self, callback: Optional[Callback] = None) -> Any:
        """Number of active sessions."""
        return complete(callback, self._length)

    def all(self, callback: Optional[Callback] = None) -> Any:
        """Values of every active session, ordered by session id."""
        return complete(callback, self._all)

    def clear(self, callback: Optional[Callback] = None) -> Any:
        """Remove every session, active or expired."""
        return complete(callback, self._clear)

    @abstractmethod
    def _get(self, session_id: str) -> Any:
        pass

    @abstractmethod
    def _set(self, session_id: str, value: Any) -> None:
        pass

    @abstractmethod
    def _destroy(self, session_id: str) -> None:
        pass

    @abstractmethod
    def _touch(self, session_id: str, value: Any) -> None:
        pass

    @abstractmethod
    def _length(self) -> int:
        pass

    @abstractmethod
    def _all(self) -> List[Any]:
        pass

    @abstractmethod
    def _clear(self) -> None:
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """
        Check that the store is open and answering queries.

        Returns:
            True if healthy, False otherwise.

        Note:
            This method does not raise; failures result in False.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the store's resources. Idempotent."""
        pass
