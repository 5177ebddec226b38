"""
MockBird Rate Limiting

Fixed-window request limiter for the public mock endpoint, keyed by client
address and project slug so projects get independent budgets.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple


@dataclass
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    retry_after_seconds: float = 0.0


class FixedWindowRateLimiter:
    """
    Count requests per key within fixed time windows.

    Example:
        limiter = FixedWindowRateLimiter(max_requests=100, window_seconds=900)
        decision = limiter.check('127.0.0.1:acme')
        if not decision.allowed:
            ...
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 900,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize limiter.

        Args:
            max_requests: Requests allowed per key and window
            window_seconds: Window length in seconds
            clock: Monotonic clock (defaults to time.monotonic)
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock or time.monotonic
        self.windows: Dict[str, Tuple[float, int]] = {}

    def check(self, key: str) -> RateLimitDecision:
        """Record one request for `key` and decide whether it may proceed."""
        now = self.clock()
        window_start, count = self.windows.get(key, (now, 0))

        if now - window_start >= self.window_seconds:
            window_start, count = now, 0

        if count >= self.max_requests:
            retry_after = self.window_seconds - (now - window_start)
            return RateLimitDecision(allowed=False, remaining=0, retry_after_seconds=retry_after)

        count += 1
        self.windows[key] = (window_start, count)
        self._evict_expired(now)
        return RateLimitDecision(allowed=True, remaining=self.max_requests - count)

    def _evict_expired(self, now: float) -> None:
        """Drop ended windows once many keys are tracked."""
        if len(self.windows) < 10000:
            return
        expired = [
            key for key, (start, _) in self.windows.items()
            if now - start >= self.window_seconds
        ]
        for key in expired:
            del self.windows[key]

    def reset(self) -> None:
        self.windows.clear()
