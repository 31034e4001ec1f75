"""
Fixed-Window Rate Limiter

Counts requests per key (the caller's network address) in fixed windows.
Once a key exhausts its budget, further requests are rejected until the
window resets.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one rate-limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_after: float  # Seconds until the current window resets

    @property
    def reset_after_seconds(self) -> int:
        """Whole seconds until reset, rounded up (for headers)."""
        return max(0, math.ceil(self.reset_after))


@dataclass
class _Window:
    started_at: float
    hits: int = 0


class FixedWindowRateLimiter:
    """
    In-memory fixed-window limiter.

    Thread-safe for async operations using an asyncio lock.
    """

    def __init__(self, max_requests: int = 100, window_seconds: float = 60.0):
        self._max_requests = max_requests
        self._window = window_seconds
        self._windows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    async def hit(self, key: str, now: float | None = None) -> RateLimitDecision:
        """
        Record one request for a key and decide whether it is allowed.

        Args:
            key: Caller identity (network origin)
            now: Monotonic time in seconds; time.monotonic() when omitted

        Returns:
            RateLimitDecision for this request
        """
        now = time.monotonic() if now is None else now
        async with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self._window:
                window = _Window(started_at=now)
                self._windows[key] = window

            window.hits += 1
            allowed = window.hits <= self._max_requests
            reset_after = window.started_at + self._window - now

            if not allowed and window.hits == self._max_requests + 1:
                logger.warning(f"Rate limit exceeded for {key}")

            return RateLimitDecision(
                allowed=allowed,
                limit=self._max_requests,
                remaining=max(0, self._max_requests - window.hits),
                reset_after=reset_after,
            )

    async def prune(self, now: float | None = None) -> int:
        """Forget windows that have already expired. Returns how many were dropped."""
        now = time.monotonic() if now is None else now
        async with self._lock:
            expired = [
                key for key, window in self._windows.items()
                if now - window.started_at >= self._window
            ]
            for key in expired:
                del self._windows[key]
            return len(expired)

    async def reset(self) -> None:
        async with self._lock:
            self._windows.clear()

    @property
    def tracked_keys(self) -> int:
        return len(self._windows)
