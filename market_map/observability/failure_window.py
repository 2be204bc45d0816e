"""
Failure-window tracker for the tracing integration.

Counts observability failures in a rolling time window and trips permanently
once a threshold is reached, so a broken tracing backend cannot degrade chat.

Dependencies: logging, threading
System role: Self-protecting breaker owned by the trace recorder
"""

import logging
import threading
from enum import Enum

logger = logging.getLogger(__name__)


class TrackerState(str, Enum):
    """Tracker states. DISABLED is terminal."""

    ENABLED = "enabled"
    DISABLED = "disabled"


class FailureWindowTracker:
    """
    Rolling-window failure counter with a one-way trip.

    The window opens on the first failure. A failure arriving more than
    ``window_ms`` after the window opened starts a new window. Reaching
    ``threshold`` failures inside one window disables the tracker for the
    rest of the process lifetime.

    Attributes:
        window_ms: Window length in milliseconds
        threshold: Failures within one window that trip the tracker
    """

    def __init__(self, window_ms: int = 60_000, threshold: int = 3) -> None:
        """
        Initialize tracker.

        Args:
            window_ms: Window length in milliseconds
            threshold: Failures within one window that trip the tracker

        Raises:
            ValueError: If window or threshold are not positive
        """
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        self.window_ms = window_ms
        self.threshold = threshold
        self._state = TrackerState.ENABLED
        self._count = 0
        self._window_start: float | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def disabled(self) -> bool:
        return self._state is TrackerState.DISABLED

    @property
    def failure_count(self) -> int:
        """Failures counted in the current window."""
        return self._count

    def record_failure(self, now_ms: float) -> bool:
        """
        Record one failure observed at ``now_ms``.

        Args:
            now_ms: Current time in milliseconds (caller-supplied clock)

        Returns:
            bool: True if the tracker is disabled after this failure
        """
        with self._lock:
            if self._window_start is None or now_ms - self._window_start > self.window_ms:
                self._window_start = now_ms
                self._count = 0
            self._count += 1

            if self._state is TrackerState.ENABLED and self._count >= self.threshold:
                self._state = TrackerState.DISABLED
                logger.warning(
                    f"{__name__}:record_failure - Tracing disabled after "
                    f"{self._count} errors in {self.window_ms}ms",
                    extra={"failure_count": self._count, "window_ms": self.window_ms},
                )
            return self._state is TrackerState.DISABLED
