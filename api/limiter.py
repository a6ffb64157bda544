"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
(to apply per-route limits with @limiter.limit()).

A single shared instance keeps one in-memory counter store for every route.
Per-module instances would each get their own counters and limits would
never trigger.

Limit strings are resolved from Settings once, at import. They must be plain
strings: SlowAPIMiddleware only hands a route over to its decorator when the
route has a static limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

_settings = get_settings()

# Per-IP limit for POST /login (brute-force mitigation).
LOGIN_LIMIT: str = _settings.login_rate_limit

# Per-IP limit for POST /refresh-token.
REFRESH_LIMIT: str = _settings.refresh_rate_limit
