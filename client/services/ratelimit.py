"""
Client-side rate limiting.

RetryCooldown honors the server's HTTP 429 Retry-After: until it elapses,
create/join attempts are refused locally without contacting the server.

OutboundMessageLimiter keeps realtime frames under the server's inbound
quota, so bursts of key presses don't earn "rate_limited" denials.
"""

import logging
import time
from collections import deque
from typing import Callable, Optional

from errors import RateLimitedError

logger = logging.getLogger(__name__)


class RetryCooldown:
    """Deadline set by a 429 response."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            clock: Monotonic time source in seconds (injectable for tests).
        """
        self.clock = clock
        self.deadline: Optional[float] = None

    def start(self, retry_after: float) -> None:
        """Begin a cooldown lasting retry_after seconds."""
        self.deadline = self.clock() + retry_after
        logger.warning(f"Rate limited by server, cooling down for {retry_after}s")

    def remaining(self) -> float:
        """Seconds left in the cooldown (0 when none is active)."""
        if self.deadline is None:
            return 0.0
        left = self.deadline - self.clock()
        if left <= 0:
            self.deadline = None
            return 0.0
        return left

    @property
    def active(self) -> bool:
        return self.remaining() > 0

    def check(self) -> None:
        """
        Raise if the cooldown is still running.

        Raises:
            RateLimitedError: With the seconds still to wait.
        """
        left = self.remaining()
        if left > 0:
            raise RateLimitedError(left)

    def reset(self) -> None:
        self.deadline = None


class OutboundMessageLimiter:
    """
    Sliding-window limiter for frames sent on one connection.

    Used to keep a single client from flooding the socket without
    needing server feedback for every frame.
    """

    def __init__(
        self,
        max_messages: int = 20,
        window_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            max_messages: Maximum frames allowed in window.
            window_seconds: Time window in seconds.
            clock: Monotonic time source in seconds.
        """
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self.clock = clock
        self.timestamps: deque[float] = deque()

    def check(self) -> bool:
        """
        Record a frame if one is allowed.

        Returns:
            True if the frame may be sent, False if rate limited.
        """
        now = self.clock()
        cutoff = now - self.window_seconds
        while self.timestamps and self.timestamps[0] <= cutoff:
            self.timestamps.popleft()

        if len(self.timestamps) >= self.max_messages:
            return False

        self.timestamps.append(now)
        return True

    def reset(self):
        """Reset the limiter (e.g., on reconnection)."""
        self.timestamps.clear()
