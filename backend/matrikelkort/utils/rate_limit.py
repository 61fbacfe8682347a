import time
from collections import deque
from typing import Deque, Dict, Any
from .logging import get_logger

logger = get_logger(__name__)

class RateLimiter:
    """In-memory sliding window rate limiter keyed by client address.

    Clients whose window has emptied are dropped, so the table only holds
    addresses seen within the last `window_seconds`.
    """

    def __init__(self, max_requests: int = 100, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: Dict[str, Deque[float]] = {}

    def _prune(self, identifier: str, now: float) -> Deque[float]:
        window_start = now - self.window_seconds
        request_times = self.requests.get(identifier, deque())
        while request_times and request_times[0] < window_start:
            request_times.popleft()
        if not request_times:
            self.requests.pop(identifier, None)
        return request_times

    def _sweep(self, now: float) -> None:
        window_start = now - self.window_seconds
        # newest timestamp is last; anything older than the window is idle
        stale = [key for key, times in self.requests.items() if times[-1] < window_start]
        for key in stale:
            del self.requests[key]

    def is_allowed(self, identifier: str) -> bool:
        """Record a request for `identifier` and report whether it fits the window."""
        now = time.time()
        self._sweep(now)
        request_times = self._prune(identifier, now)

        if len(request_times) >= self.max_requests:
            logger.warning("Rate limit exceeded", extra={'client': identifier})
            return False

        request_times.append(now)
        self.requests[identifier] = request_times
        return True

    def get_stats(self, identifier: str) -> Dict[str, Any]:
        current_requests = len(self._prune(identifier, time.time()))
        return {
            'current_requests': current_requests,
            'max_requests': self.max_requests,
            'window_seconds': self.window_seconds,
            'remaining': max(0, self.max_requests - current_requests)
        }

    def reset(self) -> None:
        self.requests.clear()

_rate_limiter = None

def get_rate_limiter(max_requests: int = 100, window_seconds: int = 60) -> RateLimiter:
    """Get the process-wide rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(max_requests=max_requests, window_seconds=window_seconds)
        logger.info(f"Initialized rate limiter: {max_requests} requests per {window_seconds}s")
    return _rate_limiter
