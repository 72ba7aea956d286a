"""Rate limiting middleware for API endpoints."""
import time
import threading
from functools import wraps
from typing import Callable, Tuple, Optional
from collections import defaultdict
from flask import request, jsonify, g, make_response
from mindbridge.core.config import get_config
from mindbridge.core.exceptions import RateLimitError
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60


class RateLimiter:
    """Sliding one-minute window per key, kept in memory."""

    def __init__(self, requests_per_minute: int = 60, clock: Callable[[], float] = time.time):
        self.requests_per_minute = requests_per_minute
        self.clock = clock
        self.requests = defaultdict(list)
        self._cleanup_interval = 300
        self._last_cleanup = clock()
        self._lock = threading.Lock()

    def is_allowed(self, key: str) -> Tuple[bool, Optional[int]]:
        """Check if request is allowed for the given key.

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        now = self.clock()
        window_start = now - WINDOW_SECONDS

        with self._lock:
            if now - self._last_cleanup > self._cleanup_interval:
                self._cleanup(window_start)
                self._last_cleanup = now

            recent = [ts for ts in self.requests[key] if ts > window_start]
            if len(recent) >= self.requests_per_minute:
                self.requests[key] = recent
                retry_after = int(min(recent) + WINDOW_SECONDS - now) + 1
                return False, retry_after

            recent.append(now)
            self.requests[key] = recent
            return True, None

    def remaining(self, key: str) -> int:
        with self._lock:
            return max(0, self.requests_per_minute - len(self.requests.get(key, [])))

    def _cleanup(self, window_start: float) -> None:
        stale = [key for key, timestamps in self.requests.items() if not timestamps or max(timestamps) <= window_start]
        for key in stale:
            del self.requests[key]
        if stale:
            logger.info(f"Cleaned up {len(stale)} rate limit entries")


_rate_limiter = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(get_config().rate_limit_per_minute)
    return _rate_limiter


def get_rate_limit_key() -> str:
    """Rate limit per user when known, otherwise per address."""
    user_id = g.get("user_id")
    if user_id:
        return f"user:{user_id}"
    return f"ip:{request.remote_addr}"


def rate_limit(f: Callable) -> Callable:
    """Decorator to apply the configured rate limit to an endpoint."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        config = get_config()
        if not config.enable_rate_limiting:
            return f(*args, **kwargs)

        limiter = get_rate_limiter()
        key = get_rate_limit_key()
        is_allowed, retry_after = limiter.is_allowed(key)

        if not is_allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "key": key,
                    "path": request.path,
                    "method": request.method,
                    "retry_after": retry_after
                }
            )
            response = jsonify(RateLimitError(retry_after=retry_after).to_dict())
            response.status_code = 429
            response.headers["Retry-After"] = str(retry_after)
            response.headers["X-RateLimit-Limit"] = str(limiter.requests_per_minute)
            response.headers["X-RateLimit-Remaining"] = "0"
            return response

        response = make_response(f(*args, **kwargs))
        response.headers["X-RateLimit-Limit"] = str(limiter.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(limiter.remaining(key))
        return response

    return decorated_function
