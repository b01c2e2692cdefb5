# WORKFLOW: Per-client request rate limiting for the whole API.
# Used by: api/main.py at app construction
# Functions:
# 1. build_limiter() - slowapi Limiter keyed on client address with one default limit
# 2. install_rate_limiting() - Attach the limiter, its 429 handler and middleware to an app
#
# Limit flow: Request -> client address -> window counter -> Continue | 429

import logging

from fastapi import FastAPI
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


def build_limiter(limit: str, enabled: bool = True) -> Limiter:
    """
    Build a limiter that applies ``limit`` to every route.

    Args:
        limit: Rate string such as "600 per 15 minutes"
        enabled: False turns every check into a no-op

    Returns:
        Limiter using in-memory counters
    """
    return Limiter(key_func=get_remote_address, default_limits=[limit], enabled=enabled)


def install_rate_limiting(app: FastAPI, limiter: Limiter) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    logger.info(f"Rate limiting {'enabled' if limiter.enabled else 'disabled'}")
