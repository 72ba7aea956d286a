"""Authentication middleware for API endpoints."""
from functools import wraps
from typing import Callable
from flask import request, g
from mindbridge.core.config import get_config
from mindbridge.core.exceptions import AuthenticationError
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)


def require_api_key(f: Callable) -> Callable:
    """Decorator to require API key authentication for endpoints."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        config = get_config()

        # Skip auth in testing mode
        if config.testing:
            return f(*args, **kwargs)

        api_key = request.headers.get(config.api_key_header)

        if not api_key:
            logger.warning(
                "Missing API key",
                extra={
                    "path": request.path,
                    "method": request.method,
                    "remote_addr": request.remote_addr
                }
            )
            raise AuthenticationError("API key required")

        if api_key not in config.api_keys:
            logger.warning(
                "Invalid API key",
                extra={
                    "path": request.path,
                    "method": request.method,
                    "remote_addr": request.remote_addr,
                    "api_key_prefix": api_key[:8] + "..." if len(api_key) > 8 else "***"
                }
            )
            raise AuthenticationError("Invalid API key")

        g.authenticated = True
        g.api_key = api_key

        return f(*args, **kwargs)

    return decorated_function


def require_user(f: Callable) -> Callable:
    """Decorator that resolves the signed-in user forwarded by the web tier.

    The user id is read from the configured header and stored in ``g.user_id``.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        config = get_config()
        user_id = (request.headers.get(config.user_id_header) or "").strip()

        if not user_id:
            logger.warning(
                "Missing user id",
                extra={"path": request.path, "method": request.method}
            )
            raise AuthenticationError("Sign in to continue")

        g.user_id = user_id
        return f(*args, **kwargs)

    return decorated_function


def current_user_id() -> str:
    """The user resolved by :func:`require_user` for this request."""
    user_id = g.get("user_id")
    if not user_id:
        raise AuthenticationError("Sign in to continue")
    return user_id
