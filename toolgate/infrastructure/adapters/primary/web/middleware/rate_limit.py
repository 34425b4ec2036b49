"""
Rate limiting for API endpoints.

Uses slowapi with in-memory storage, keyed by client address. The default
limit applies to every HTTP route through ``SlowAPIMiddleware``.
"""

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

from toolgate.configuration.config import Settings

logger = logging.getLogger(__name__)


def create_limiter(settings: Settings) -> Limiter:
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    logger.info(
        f"Rate limiter initialized ({settings.rate_limit}, "
        f"enabled={settings.rate_limit_enabled})"
    )
    return limiter
