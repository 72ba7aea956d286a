"""Airwallex API data models."""
import time
import threading
from typing import Optional, Dict, Any, Callable
from datetime import datetime
from dataclasses import dataclass

DEFAULT_TOKEN_LIFETIME_SECONDS = 1800


def _parse_expiry(value: str) -> Optional[float]:
    """Parse ``2025-07-03T04:10:02+0000`` style timestamps to epoch seconds."""
    for parse in (
        lambda v: datetime.strptime(v, "%Y-%m-%dT%H:%M:%S%z"),
        lambda v: datetime.fromisoformat(v.replace("Z", "+00:00")),
    ):
        try:
            return parse(value).timestamp()
        except (TypeError, ValueError):
            continue
    return None


@dataclass(frozen=True)
class AccessToken:
    """Bearer credential issued by the authentication endpoint."""
    token: str
    expires_at: float  # epoch seconds

    @classmethod
    def from_login_response(cls, data: Dict[str, Any], now: float) -> "AccessToken":
        """Create from the login response. Defaults to 30 minutes without ``expires_at``."""
        expires_at = None
        if data.get("expires_at"):
            expires_at = _parse_expiry(data["expires_at"])
        if expires_at is None:
            expires_at = now + DEFAULT_TOKEN_LIFETIME_SECONDS
        return cls(token=data["token"], expires_at=expires_at)

    def is_valid(self, now: float, margin_seconds: float) -> bool:
        """A token is usable until ``margin_seconds`` before it expires."""
        return now < self.expires_at - margin_seconds


class TokenCache:
    """Process-wide bearer token cache with a single refresh at a time."""

    def __init__(self, margin_seconds: float = 60, clock: Callable[[], float] = time.time):
        self.margin_seconds = margin_seconds
        self.clock = clock
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    def peek(self) -> Optional[str]:
        """Return the cached token if it is still valid."""
        token = self._token
        if token and token.is_valid(self.clock(), self.margin_seconds):
            return token.token
        return None

    def get_or_refresh(self, fetch: Callable[[], AccessToken]) -> str:
        """Return a valid token, calling ``fetch`` only when none is cached.

        Callers arriving while a refresh is in progress wait for it and reuse
        its result instead of authenticating again.
        """
        cached = self.peek()
        if cached:
            return cached

        with self._lock:
            cached = self.peek()
            if cached:
                return cached
            self._token = fetch()
            return self._token.token

    def invalidate(self, stale_token: str) -> None:
        """Drop the cached token if it is the one that was rejected."""
        with self._lock:
            if self._token and self._token.token == stale_token:
                self._token = None

    def clear(self) -> None:
        with self._lock:
            self._token = None


_token_cache = None


def get_token_cache(margin_seconds: float = 60) -> TokenCache:
    """Get or create the global token cache."""
    global _token_cache
    if _token_cache is None:
        _token_cache = TokenCache(margin_seconds=margin_seconds)
    return _token_cache
