"""
Rate Limiter - In-memory fixed-window request limits per client.

Each limit type has its own window and allowance; counters are keyed by
(limit type, identifier). Expired windows are dropped lazily and the
oldest entries are evicted when the store grows too large.
"""
import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    requests: int
    window_seconds: float


@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset_time: float  # epoch seconds

    def retry_after(self, now: Optional[float] = None) -> int:
        """Whole seconds until the window resets, never less than 1."""
        now = time.time() if now is None else now
        return max(1, math.ceil(self.reset_time - now))

    def headers(self) -> dict[str, str]:
        return {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': str(int(self.reset_time)),
        }


RATE_LIMITS = {
    'general': RateLimit(requests=20, window_seconds=60),
    'auth': RateLimit(requests=5, window_seconds=60),
    'estimate_calculation': RateLimit(requests=10, window_seconds=60),
}

MAX_ENTRIES = 10_000
EVICT_FRACTION = 0.2


class RateLimiter:
    """Fixed-window limiter; safe to share between request threads."""

    def __init__(
        self,
        limits: Optional[dict[str, RateLimit]] = None,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self.limits = dict(limits or RATE_LIMITS)
        self.max_entries = max_entries
        self._clock = clock
        # (type, identifier) -> [count, reset_time]; oldest first
        self._windows: OrderedDict[tuple[str, str], list] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def check(self, identifier: str, limit_type: str = 'general') -> RateLimitResult:
        """Count one request and report whether it is allowed."""
        limit = self.limits[limit_type]
        now = self._clock()
        key = (limit_type, identifier)

        with self._lock:
            window = self._windows.get(key)
            if window is None or window[1] <= now:
                if window is None and len(self._windows) >= self.max_entries:
                    self._evict(now)
                window = [0, now + limit.window_seconds]
                self._windows[key] = window
            self._windows.move_to_end(key)

            if window[0] >= limit.requests:
                logger.warning("Rate limit %r exceeded for %s", limit_type, identifier)
                return RateLimitResult(False, limit.requests, 0, window[1])

            window[0] += 1
            return RateLimitResult(True, limit.requests, limit.requests - window[0], window[1])

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _evict(self, now: float) -> None:
        """Drop expired windows; if still full, drop the oldest share of entries."""
        expired = [k for k, (_, reset_time) in self._windows.items() if reset_time <= now]
        for key in expired:
            del self._windows[key]

        if len(self._windows) >= self.max_entries:
            to_drop = max(1, int(len(self._windows) * EVICT_FRACTION))
            for _ in range(to_drop):
                self._windows.popitem(last=False)


def rate_limit_body(result: RateLimitResult, now: Optional[float] = None) -> dict:
    """JSON body for a rejected request."""
    return {
        'error': 'Too many requests',
        'message': 'Please try again later',
        'retryAfter': result.retry_after(now),
    }


def get_client_ip(headers, peer: Optional[str] = None) -> str:
    """Client address from proxy headers, then the socket peer."""
    forwarded = headers.get('x-forwarded-for')
    if forwarded:
        first = forwarded.split(',')[0].strip()
        if first:
            return first
    real_ip = headers.get('x-real-ip')
    if real_ip:
        return real_ip.strip()
    return peer or 'unknown'


rate_limiter = RateLimiter()
