"""Fixed window rate limiter for vote toggles.

Each user gets a window of ``window_seconds`` starting at their first
request. Requests are allowed while the window count is below the limit.
Rejected requests are not counted, so a retry storm cannot extend or wedge
the window: it always expires ``window_seconds`` after it opened.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from slopwatch.shared.models import RATE_LIMIT, RATE_WINDOW_SECONDS

logger = logging.getLogger(__name__)


class RateLimitError(Exception):
    """Raised when a user has exhausted the current window."""

    def __init__(self, key: str, retry_after: float):
        self.key = key
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for {key}, retry in {retry_after:.1f}s")


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Per-key fixed window counter.

    Args:
        limit: Maximum number of requests per window
        window_seconds: Window length in seconds
        clock: Monotonic time source in seconds
    """

    def __init__(
        self,
        limit: int = RATE_LIMIT,
        window_seconds: float = RATE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self.records: Dict[str, RateLimitRecord] = {}

    def check(self, key: str) -> bool:
        """Record a request for ``key`` and report whether it is allowed.

        Args:
            key: User identifier

        Returns:
            True if allowed, False if the window is exhausted
        """
        now = self.clock()
        record = self.records.get(key)

        if record is None or now >= record.reset_at:
            self.records[key] = RateLimitRecord(count=1, reset_at=now + self.window_seconds)
            return True

        if record.count >= self.limit:
            logger.debug(f"Rate limit hit for {key}: {record.count}/{self.limit}")
            return False

        record.count += 1
        return True

    def retry_after(self, key: str) -> float:
        """Seconds until the window of ``key`` expires (0 if none is open)."""
        record = self.records.get(key)
        if record is None:
            return 0.0
        return max(0.0, record.reset_at - self.clock())

    def reset(self, key: Optional[str] = None) -> None:
        """Forget the window of ``key``, or of every key when omitted."""
        if key is None:
            self.records.clear()
        else:
            self.records.pop(key, None)
