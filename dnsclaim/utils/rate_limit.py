"""
In-memory fixed-window rate limiter for claim verification.

Counts verification requests per identifier (the claimed domain) inside a
fixed window.  The first hit opens a window; once ``max_requests`` hits
have been counted, further hits are refused until the window resets.

Thread safety:
  The check-then-increment in ``hit()`` runs under a lock, so concurrent
  Flask worker threads (or tasks on several event loops) cannot race past
  the limit.  State is per instance; the application factory creates one
  limiter and shares it with the verifier.

Usage:
    from dnsclaim.utils.rate_limit import RateLimiter

    limiter = RateLimiter(max_requests=10, window_seconds=60)
    if not limiter.hit("example.com"):
        raise RateLimited(...)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_MAX_REQUESTS: Final[int] = 10
DEFAULT_WINDOW_SECONDS: Final[float] = 60.0


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window request counter keyed by identifier."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # identifier -> current window
        self._windows: dict[str, _Window] = {}

    def hit(self, identifier: str) -> bool:
        """Count one request for *identifier*.

        Returns:
            True  - the request is allowed and has been counted.
            False - the window's limit is already reached; block it.
        """
        with self._lock:
            now = self._clock()
            window = self._windows.get(identifier)

            if window is None or now > window.reset_at:
                self._windows[identifier] = _Window(count=1, reset_at=now + self.window_seconds)
                return True

            if window.count >= self.max_requests:
                logger.warning(
                    "Rate limit active: identifier=%r count=%d remaining=%.1fs",
                    identifier,
                    window.count,
                    window.reset_at - now,
                )
                return False

            window.count += 1
            return True

    def remaining(self, identifier: str) -> int:
        """Return how many requests *identifier* may still make in its window."""
        with self._lock:
            window = self._windows.get(identifier)
            if window is None or self._clock() > window.reset_at:
                return self.max_requests
            return max(self.max_requests - window.count, 0)

    def reset(self, identifier: str) -> None:
        """Clear the window for a specific identifier."""
        with self._lock:
            self._windows.pop(identifier, None)

    def clear(self) -> None:
        """Remove all windows."""
        with self._lock:
            self._windows.clear()
