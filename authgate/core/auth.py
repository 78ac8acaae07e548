"""Authentication helpers for password hashing, JWT creation and cookies.

Shared utilities used by the credential service and auth endpoints.

Pipeline:
- hash_password / verify_password: bcrypt, run in a worker thread
- validate_password_strength: Format rules (sync, no store access)
- create_jwt / decode_jwt / set_auth_cookie: session issuance
- DUMMY_HASH: Timing-safe constant for user enumeration defense
"""

import asyncio
import re
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt
from fastapi import Response

from authgate.core.config import settings
from authgate.core.errors import ValidationError


# bcrypt only looks at the first 72 bytes; newer releases reject longer input.
_BCRYPT_MAX_BYTES = 72
_MIN_PASSWORD_LENGTH = 8

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents user enumeration via response time differences.
# Pre-generated to avoid ~300ms bcrypt computation on every app startup.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"


def _hash_sync(password: str, rounds: int) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def _check_sync(password: str, password_hash: bytes) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash)
    except ValueError:  # over-long password or malformed stored hash
        return False


async def hash_password(password: str, *, rounds: int | None = None) -> str:
    """Hash a password with bcrypt (per-password salt).

    Hashing is CPU-bound, so it runs in a worker thread to keep the event
    loop responsive.

    Args:
        password: Plain-text password.
        rounds: bcrypt cost factor. Defaults to settings.bcrypt_rounds.

    Returns:
        bcrypt hash as a string.
    """
    return await asyncio.to_thread(
        _hash_sync, password, rounds or settings.bcrypt_rounds
    )


async def verify_password(password: str, password_hash: str | bytes | None) -> bool:
    """Compare a password against a bcrypt hash.

    When ``password_hash`` is None the comparison still runs against
    DUMMY_HASH so callers take the same time whether or not a real hash
    exists; the result is then always False.

    Args:
        password: Plain-text password from the request.
        password_hash: Stored bcrypt hash, or None.

    Returns:
        True only when the password matches a real stored hash.
    """
    if password_hash is None:
        await asyncio.to_thread(_check_sync, password, DUMMY_HASH)
        return False
    if isinstance(password_hash, str):
        password_hash = password_hash.encode()
    return await asyncio.to_thread(_check_sync, password, password_hash)


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    At least 8 characters, at most 72 bytes (bcrypt limit), with at least
    one letter and one number.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < _MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {_MIN_PASSWORD_LENGTH} characters"
        )
    if len(password.encode()) > _BCRYPT_MAX_BYTES:
        raise ValidationError(
            f"Password must be at most {_BCRYPT_MAX_BYTES} bytes"
        )
    if not re.search(r"[a-zA-Z]", password):
        raise ValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")


def create_jwt(
    *,
    user_id: str,
    role: str,
    secret: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT with standard claims plus the account role.

    Args:
        user_id: User UUID string for the sub claim.
        role: Account role ("USER" or "ADMIN").
        secret: HMAC signing secret.
        expires_delta: Time until expiration. Defaults to settings.session_ttl_minutes.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "role": role,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(minutes=settings.session_ttl_minutes)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_jwt(token: str, *, secret: str) -> dict[str, Any]:
    """Decode and verify a session JWT.

    Args:
        token: Encoded JWT from the session cookie.
        secret: HMAC signing secret.

    Returns:
        Verified claims.

    Raises:
        jwt.InvalidTokenError: Bad signature, expired, wrong aud/iss.
    """
    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        audience=settings.auth_audience,
        issuer=settings.auth_issuer,
    )


def set_auth_cookie(response: Response, token: str) -> None:
    """Set httpOnly JWT cookie on response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    are configured via settings for environment-appropriate security.

    Args:
        response: FastAPI response object.
        token: JWT token string.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=settings.session_ttl_minutes * 60,
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response) -> None:
    """Delete the session cookie.

    Cookie attributes must match set_auth_cookie() for browser to delete.
    """
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )
