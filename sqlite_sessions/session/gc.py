"""
Background garbage collection of expired session rows.

Reads already ignore expired rows; the sweep only reclaims their space.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class GarbageCollector:
    """
    Periodically deletes rows whose expiry has passed.

    The timer runs on a daemon thread that waits on an Event between
    sweeps, so ``stop()`` takes effect immediately and an idle collector
    never keeps the interpreter alive.

    Args:
        delete_expired: Deletes rows with ``expires_at < now`` and returns
            the number of rows removed; called with ``now`` in epoch ms.
        clock: Returns the current time in epoch milliseconds.
        interval_ms: Milliseconds between sweeps; 0 disables the timer
            (``sweep()`` still works on demand).
    """

    def __init__(
        self,
        delete_expired: Callable[[int], int],
        clock: Callable[[], int],
        interval_ms: int,
        name: str = "session-gc",
    ):
        if interval_ms < 0:
            raise ValueError("interval_ms must be >= 0")
        self._delete_expired = delete_expired
        self._clock = clock
        self.interval_ms = interval_ms
        self.name = name
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep(self) -> int:
        """Delete every row expired at call time. Errors propagate."""
        removed = self._delete_expired(self._clock())
        logger.debug("Expired sessions collected", extra={"extra_data": {"removed": removed}})
        return removed

    def start(self) -> None:
        if self.interval_ms == 0 or self.running:
            return
        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stopped.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        # Event.wait rejects timeouts above TIMEOUT_MAX
        timeout = min(self.interval_ms / 1000, threading.TIMEOUT_MAX)
        while not self._stopped.wait(timeout):
            self.tick()

    def tick(self) -> Optional[int]:
        """
        Run one scheduled sweep.

        A failure is logged and swallowed so the next tick still runs;
        there is no caller to report it to.
        """
        try:
            return self.sweep()
        except Exception:
            logger.warning("Session garbage collection failed; retrying next interval", exc_info=True)
            return None
