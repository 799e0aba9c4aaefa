"""
Per-client rate limiter using SlowAPI, keyed on the remote address.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from athena.config import settings

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT_DEFAULT])
