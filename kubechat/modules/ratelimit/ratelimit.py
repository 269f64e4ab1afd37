"""
Per-identity sliding-window rate limiter.

Each identity keeps the timestamps of its admissions inside the trailing
window. Checks prune lazily; a background sweep drops identities whose
history has fully aged out so memory tracks active callers only.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window admission control keyed by caller identity."""

    def __init__(
        self,
        limit: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            limit: Admissions allowed per identity within the window
            window_seconds: Length of the trailing window
            clock: Monotonic time source (injectable for tests)
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._visits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._sweeper_thread: Optional[threading.Thread] = None
        self._stop_sweeper = threading.Event()

    def _prune(self, history: Deque[float], now: float) -> None:
        while history and now - history[0] >= self.window_seconds:
            history.popleft()

    def admit(self, identity: str) -> bool:
        """
        Record an admission for identity if it is under the limit.

        Returns:
            True if admitted, False if the identity is rate limited
        """
        with self._lock:
            now = self._clock()
            history = self._visits.setdefault(identity, deque())
            self._prune(history, now)

            if len(history) >= self.limit:
                logger.info(f"Rate limit exceeded for {identity} ({len(history)}/{self.limit})")
                return False

            history.append(now)
            return True

    def remaining(self, identity: str) -> int:
        """Admissions left for identity in the current window."""
        with self._lock:
            history = self._visits.get(identity)
            if not history:
                return self.limit
            self._prune(history, self._clock())
            return max(0, self.limit - len(history))

    def sweep(self) -> int:
        """
        Drop identities whose whole history is older than the window.

        Returns:
            Number of identities removed
        """
        with self._lock:
            now = self._clock()
            stale = []
            for identity, history in self._visits.items():
                self._prune(history, now)
                if not history:
                    stale.append(identity)
            for identity in stale:
                del self._visits[identity]

        if stale:
            logger.debug(f"Rate limiter swept {len(stale)} idle identities")
        return len(stale)

    @property
    def tracked_identities(self) -> int:
        with self._lock:
            return len(self._visits)

    def start(self) -> None:
        """Start the background sweep, running once per window."""
        if self._sweeper_thread and self._sweeper_thread.is_alive():
            return

        self._stop_sweeper.clear()
        self._sweeper_thread = threading.Thread(
            target=self._sweep_loop, daemon=True, name="ratelimit-sweeper"
        )
        self._sweeper_thread.start()
        logger.info(
            f"Rate limiter started (limit: {self.limit} per {self.window_seconds:g}s)"
        )

    def _sweep_loop(self) -> None:
        while not self._stop_sweeper.wait(self.window_seconds):
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Error in rate limiter sweep: {e}")

    def stop(self) -> None:
        """Stop the background sweep."""
        self._stop_sweeper.set()
        if self._sweeper_thread:
            self._sweeper_thread.join(timeout=5)
            self._sweeper_thread = None
