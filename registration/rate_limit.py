"""SlowAPI rate limiting keyed by client address."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .config import get_settings
from .errors import error_body

# Credential guessing and mail flooding are the abuse cases on the auth side.
LOGIN_LIMIT = "10/minute"
EMAIL_LIMIT = "5/minute"
ADMIN_READ_LIMIT = "30/minute"
ADMIN_WRITE_LIMIT = "20/minute"

settings = get_settings()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.default_rate_limit],
    enabled=settings.rate_limiting_enabled,
)


def rate_limit_handler(_: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content=error_body("Too many requests. Please try again later.", {"limit": str(exc.detail)}),
    )


def apply_rate_limiter(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
