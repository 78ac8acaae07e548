"""Rate limiting configuration using slowapi.

Security: Slows credential stuffing on sign-in and mailbox flooding on the
endpoints that send email.

Signed-in requests are keyed on the JWT subject so users behind a shared
IP do not starve each other. Everything else is keyed on client IP.

Usage in routers:
    from authgate.core.rate_limiting import limiter

    @router.post("/authenticate")
    @limiter.limit("5/15minute")
    async def authenticate(request: Request, ...):
        ...
"""

import jwt
from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from authgate.core.auth import decode_jwt
from authgate.core.config import settings


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Valid session cookie: "user:{sub}"
    - No cookie or invalid JWT: "unauth:{ip}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    # Note: Only the sub claim is needed for keying. Endpoints that need a
    # signed-in user still run the full check in deps.py.
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        try:
            payload = decode_jwt(token, secret=settings.auth_secret.get_secret_value())
            sub = payload["sub"]
            # Defense-in-depth: a UUID string is 36 chars
            if len(sub) <= 36:
                return f"user:{sub}"
        except (jwt.InvalidTokenError, KeyError, TypeError):
            pass

    return f"unauth:{get_remote_address(request)}"


# In-memory storage (single instance). Set RATELIMIT_STORAGE_URL for Redis.
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Returns 429 Too Many Requests with the standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # exc.detail looks like "5 per 15 minute"; fall back to 60 seconds
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
                "details": None,
            }
        },
        headers={"Retry-After": retry_after},
    )
