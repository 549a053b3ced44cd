"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/secrets.py (to apply per-route limits with @limiter.limit()).
A single shared instance keeps one in-memory counter store for all routes.

The per-route limit is read from settings at request time (PSST_API_RATE_LIMIT),
so tests can raise it through the environment.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def decode_rate_limit() -> str:
    return get_settings().api_rate_limit
