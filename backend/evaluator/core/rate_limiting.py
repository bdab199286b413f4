"""
Rate limiting configuration and utilities
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, status
from fastapi.responses import JSONResponse
import logging

from evaluator.core.config import settings

logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000/day", "200/hour"],
    enabled=settings.RATE_LIMIT_ENABLED,
)

RATE_LIMITS = {
    "upload": "30/minute",      # PDF uploads
    "evaluate": "30/minute",    # evaluation submissions
    "result": "120/minute",     # status polling
}


def custom_rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Custom handler for rate limit exceeded"""
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}: {exc.detail}")

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": "Rate limit exceeded",
            "message": f"Too many requests. Limit: {exc.detail}",
        },
    )
