"""
Client-side submission rate limiter.

A soft control against one device flooding the report stream. It is not
enforced by the server and can be bypassed by a modified client.
"""

import logging
import math
import time
from typing import Callable, Optional

from crowdshield.core.constants import LAST_REPORT_KEY
from crowdshield.device.storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


class SubmissionRateLimiter:
    """
    Enforces a minimum interval between report submissions from one device.

    The only state is the last submission time in epoch milliseconds, kept
    in the injected key-value store.
    """

    DEFAULT_WINDOW_SECONDS = 60

    def __init__(
        self,
        storage: KeyValueStore,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize rate limiter.

        Args:
            storage: Persisted client state
            window_seconds: Minimum spacing between submissions
            clock: Returns current time in epoch seconds
        """
        self.storage = storage
        self.window_seconds = window_seconds
        self.clock = clock

    def _last_submission_ms(self) -> Optional[int]:
        try:
            raw = self.storage.get(LAST_REPORT_KEY)
        except StorageError as e:
            logger.warning(f"Last submission time unreadable: {e}")
            return None

        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Ignoring malformed last submission time: {raw!r}")
            return None

    def _elapsed_seconds(self) -> Optional[float]:
        last_ms = self._last_submission_ms()
        if last_ms is None:
            return None
        return max(0.0, self.clock() - last_ms / 1000.0)

    def can_submit(self) -> bool:
        """True if no prior submission or the window has fully elapsed."""
        elapsed = self._elapsed_seconds()
        return elapsed is None or elapsed >= self.window_seconds

    def seconds_until_next_allowed(self) -> int:
        """Whole seconds left in the current window, 0 when allowed."""
        elapsed = self._elapsed_seconds()
        if elapsed is None:
            return 0
        return max(0, math.ceil(self.window_seconds - elapsed))

    def mark_submitted(self) -> None:
        """Record a successful submission at the current time."""
        now_ms = int(self.clock() * 1000)
        try:
            self.storage.set(LAST_REPORT_KEY, str(now_ms))
        except StorageError as e:
            logger.warning(f"Could not persist submission time: {e}")
