"""
Rate Limiting for InfinitiFlow API
==================================
IP-based rate limiting using slowapi.

Storage is in-memory by default; point RATE_LIMIT_STORAGE_URI at Redis
(redis://host:6379/0) to share counters between workers.

Global default: RATE_LIMIT_PER_WINDOW requests per RATE_LIMIT_WINDOW_MINUTES.
Special endpoints have their own limits:
- /auth/login: 10 req/min (looser than the account lockout threshold)
- /auth/register: 3 req/min
- /auth/forgot-password, /auth/resend-verification: 3 req/min

Per-user throttling of authenticated routes lives in
infinitiflow.modules.auth.rate_limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from infinitiflow.core.config import settings
from infinitiflow.core.logging_config import logger


DEFAULT_LIMIT = f"{settings.RATE_LIMIT_PER_WINDOW}/{settings.RATE_LIMIT_WINDOW_MINUTES} minutes"

LOGIN_LIMIT = "10/minute"
REGISTER_LIMIT = "3/minute"
EMAIL_FLOW_LIMIT = "3/minute"


def get_client_identifier(request: Request) -> str:
    """Rate limit key: client IP"""
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[DEFAULT_LIMIT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
    strategy="fixed-window",
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return the standard error envelope with a Retry-After hint"""
    logger.warning(
        f"[RateLimit] Exceeded for {get_client_identifier(request)}: {exc.detail}",
        extra={"event_type": "rate_limit", "http_path": request.url.path}
    )

    return JSONResponse(
        status_code=429,
        content={
            "status": "fail",
            "message": "Too many requests from this IP, please try again later.",
            "code": "RATE_LIMITED",
            "details": {"limit": str(exc.detail)},
        },
        headers={"Retry-After": "60"},
    )
