import time
from collections import defaultdict, deque
from threading import Lock
from typing import Deque, Dict

from fastapi import Request
from loguru import logger

from ddsportal.core.config import settings
from ddsportal.core.exceptions import RateLimitedError


class SlidingWindowRateLimiter:
    """
    Per client address request cap over a sliding time window.
    Used as a route dependency: `dependencies=[Depends(strict_limiter)]`.
    """

    def __init__(self, name: str, max_requests: int, window_seconds: int, message: str = None):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()
        self._last_sweep = time.monotonic()

    def _sweep(self, now: float, cutoff: float):
        """Drops keys whose newest hit has left the window. Caller holds the lock."""
        if now - self._last_sweep < self.window_seconds:
            return
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now

    def hit(self, key: str) -> bool:
        """Records a request for `key`; False when the window is already full."""
        now = time.monotonic()
        cutoff = now - self.window_seconds

        with self._lock:
            self._sweep(now, cutoff)

            hits = self._hits[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.max_requests:
                return False

            hits.append(now)
            return True

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self):
        with self._lock:
            self._hits.clear()
            self._last_sweep = time.monotonic()

    def __call__(self, request: Request):
        client = request.client.host if request.client else "unknown"
        if not self.hit(client):
            logger.warning(f"Rate limit '{self.name}' exceeded for {client}")
            if self.message:
                raise RateLimitedError(self.message)
            raise RateLimitedError()


general_limiter = SlidingWindowRateLimiter(
    "general",
    max_requests=settings.rate_limit_max_requests,
    window_seconds=settings.rate_limit_window_seconds,
)

strict_limiter = SlidingWindowRateLimiter(
    "strict",
    max_requests=settings.strict_rate_limit_max_requests,
    window_seconds=settings.strict_rate_limit_window_seconds,
    message="Too many attempts, please try again later.",
)
