"""
Shared slowapi rate limiter instance.

Counters live in process memory in fixed windows keyed by client address;
they reset on restart. Every API route shares ``rate_limit_default`` through
``@default_limit``; routes add stricter limits with ``@limiter.limit(...)``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from orgauth.core.config import get_settings

settings = get_settings()

AUTH_LIMIT_MESSAGE = "Too many authentication attempts, please try again later."
CREATE_ORG_LIMIT_MESSAGE = "Too many organizations created, please try again later."
DEFAULT_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    storage_uri="memory://",
    strategy="fixed-window",
    enabled=settings.rate_limit_enabled,
)

# One counter per client shared by every API route. SlowAPIMiddleware does not
# resolve routes added with include_router, so each route carries this decorator.
default_limit = limiter.shared_limit(
    settings.rate_limit_default,
    scope="api",
    error_message=DEFAULT_LIMIT_MESSAGE,
)
