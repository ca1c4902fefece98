"""
API rate limiting using slowapi.

Provides a shared Limiter instance keyed by client IP address. Limits are
kept in process memory by default (RATE_LIMIT_STORAGE_URI), matching the
single-process deployment of the API. Enable via RATE_LIMIT_ENABLED=true.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.config.settings import get_settings


def create_limiter() -> Limiter:
    """Create a configured Limiter instance."""
    settings = get_settings()
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
        storage_uri=settings.rate_limit_storage_uri,
        enabled=settings.rate_limit_enabled,
    )


limiter = create_limiter()
