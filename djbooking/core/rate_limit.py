from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from djbooking.core.config import settings

# Keyed by client IP. Routes without their own limit get RATE_LIMIT_DEFAULT through SlowAPIMiddleware.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # must stay sync: SlowAPIMiddleware calls it without awaiting
    return JSONResponse(
        status_code=429,
        content={"detail": f"Too many requests from this IP, please try again later ({exc.detail})"},
    )
