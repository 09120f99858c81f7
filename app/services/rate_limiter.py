"""Simple in-memory rate limiter for public endpoints.

Lightweight sliding-window implementation suitable for single-instance
deployments. Token scanning against the public invite endpoints is the main
thing it slows down.
"""
import logging
import time
from collections import defaultdict
from threading import Lock
from typing import Callable, Dict, List, Tuple

from ..config import get_settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Sliding-window rate limiter keyed by client (usually the client IP).
    """

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: int = 60,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        max_keys: int = 10000,
        sweep_every: int = 1000,
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum number of requests allowed per window
            window_seconds: Time window in seconds
            name: Label used in log lines
            clock: Monotonic time source, injectable for tests
            max_keys: Tracked-key count above which idle keys are pruned at once
            sweep_every: Calls between routine prunes of idle keys
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self.max_keys = max_keys
        self.sweep_every = sweep_every
        self._calls = 0
        self._lock = Lock()

    def _cleanup_old_requests(self, key: str, current_time: float) -> None:
        cutoff = current_time - self.window_seconds
        self._requests[key] = [t for t in self._requests[key] if t > cutoff]
        if not self._requests[key]:
            del self._requests[key]

    def _prune_idle(self, current_time: float) -> None:
        """Drop every key with no request left in the window. Caller holds the lock."""
        cutoff = current_time - self.window_seconds
        idle = [k for k, times in self._requests.items() if not times or times[-1] <= cutoff]
        for k in idle:
            del self._requests[k]
        if idle:
            logger.debug(f"Rate limit '{self.name}' pruned {len(idle)} idle keys")

    def _maybe_prune(self, current_time: float) -> None:
        self._calls += 1
        if self._calls >= self.sweep_every or len(self._requests) > self.max_keys:
            self._calls = 0
            self._prune_idle(current_time)

    def is_allowed(self, key: str) -> Tuple[bool, int]:
        """
        Check whether another request from ``key`` fits in the window.

        Returns:
            Tuple of (is_allowed, remaining_requests)
        """
        current_time = self._clock()

        with self._lock:
            self._maybe_prune(current_time)
            self._cleanup_old_requests(key, current_time)
            request_count = len(self._requests.get(key, ()))
            remaining = max(0, self.max_requests - request_count)

            if request_count >= self.max_requests:
                logger.warning(
                    f"Rate limit '{self.name}' exceeded for {key}: {request_count} requests in window"
                )
                return False, 0

            return True, remaining

    def record_request(self, key: str) -> None:
        with self._lock:
            self._requests[key].append(self._clock())

    def hit(self, key: str) -> bool:
        """Check and record in one step. Returns False when the request must be refused."""
        allowed, _ = self.is_allowed(key)
        if allowed:
            self.record_request(key)
        return allowed

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
            self._calls = 0

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._requests)


settings = get_settings()

# Public invite validation / redemption, per client IP
invite_rate_limiter = RateLimiter(
    max_requests=settings.invite_rate_limit_requests,
    window_seconds=settings.invite_rate_limit_window_seconds,
    name="invites",
)

# Login attempts, per client IP
auth_rate_limiter = RateLimiter(max_requests=10, window_seconds=300, name="auth")
