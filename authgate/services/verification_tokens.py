"""Single-use token issuing and validation.

Two kinds of token share one table: email-verification (24h) and
password-reset (1h). Issuing a token replaces any earlier token of the
same kind for the same email. Validating a token claims it atomically,
checks expiry, and applies the kind-specific change to the account.

Expiry is lazy: an expired token is deleted the moment someone tries to
use it. Nothing sweeps the table in the background.

Validation returns a ``TokenValidationResult`` instead of raising, so the
HTTP layer decides which outcome maps to which error message.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from authgate.core.config import settings
from authgate.models.verification_token import TokenKind
from authgate.repositories.user_repository import UserRepository
from authgate.repositories.verification_token_repository import (
    VerificationTokenRepository,
)

logger = logging.getLogger(__name__)

# 32 random bytes -> 43 url-safe characters
_TOKEN_BYTES = 32


# =============================================================================
# Result types
# =============================================================================


class TokenStatus(str, Enum):
    """Outcome of a validation attempt.

    Values:
        CONSUMED: Token was valid; the account change and the token
            deletion were committed together.
        NOT_FOUND: No token with that value and kind (never issued,
            already used, replaced by a newer one, or claimed by a
            concurrent request).
        EXPIRED: Token existed but was past its expiry. It has been deleted.
        ACCOUNT_MISSING: Token was valid but no account holds its email.
            Nothing was committed; the token is still usable.
    """

    CONSUMED = "consumed"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ACCOUNT_MISSING = "account_missing"


@dataclass(frozen=True)
class TokenValidationResult:
    """Tagged result of ``validate_token``.

    Attributes:
        status: What happened.
        email: Email the token belonged to. None for NOT_FOUND.
    """

    status: TokenStatus
    email: str | None = None

    @property
    def ok(self) -> bool:
        """True when the token was consumed."""
        return self.status is TokenStatus.CONSUMED


# =============================================================================
# Helpers
# =============================================================================


def hash_token(plain: str) -> str:
    """SHA-256 hex digest used as the stored lookup key."""
    return hashlib.sha256(plain.encode()).hexdigest()


def generate_token() -> tuple[str, str]:
    """Generate a token and its SHA-256 hash.

    Returns:
        (plain_token, token_hash): plain for email, hash for DB storage.
    """
    plain = secrets.token_urlsafe(_TOKEN_BYTES)
    return plain, hash_token(plain)


def token_ttl(kind: TokenKind) -> timedelta:
    """Lifetime of a freshly issued token of ``kind``."""
    if kind is TokenKind.EMAIL_VERIFICATION:
        return timedelta(hours=settings.email_verification_ttl_hours)
    return timedelta(minutes=settings.password_reset_ttl_minutes)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# =============================================================================
# Issuer
# =============================================================================


async def issue_token(db: AsyncSession, kind: TokenKind, email: str) -> str:
    """Create a new token of ``kind`` for ``email``.

    Overwrites any existing token of the same kind for the email in one
    upsert, so at most one is live even when two requests issue at once.
    The caller owns the transaction and must commit.

    Args:
        db: Async database session.
        kind: What the token authorizes.
        email: Owning account's email.

    Returns:
        The plain token, for delivery through the notification sink.
    """
    plain_token, token_hash = generate_token()
    await VerificationTokenRepository.replace(
        db,
        kind=kind,
        email=email,
        token_hash=token_hash,
        expires=datetime.now(UTC) + token_ttl(kind),
    )
    return plain_token


# =============================================================================
# Validator
# =============================================================================


async def validate_token(
    db: AsyncSession,
    kind: TokenKind,
    token: str,
    *,
    new_password_hash: str | None = None,
) -> TokenValidationResult:
    """Consume a token and apply the change it authorizes.

    Steps:
    1. Claim the token (``DELETE ... RETURNING``). No row means NOT_FOUND.
    2. If expired, commit the deletion and report EXPIRED.
    3. Apply the transition: EMAIL_VERIFICATION sets ``verified_at``;
       PASSWORD_RESET writes ``new_password_hash``.
    4. If no account matched, roll back (the token comes back) and report
       ACCOUNT_MISSING. Otherwise commit transition and deletion together.

    Store errors propagate after a rollback, so the token survives them.

    Args:
        db: Async database session. This function commits or rolls back.
        kind: Expected token kind; a token of another kind is NOT_FOUND.
        token: Plain token from the user.
        new_password_hash: Required for PASSWORD_RESET.

    Returns:
        TokenValidationResult describing the outcome.

    Raises:
        ValueError: PASSWORD_RESET without ``new_password_hash``.
    """
    if kind is TokenKind.PASSWORD_RESET and not new_password_hash:
        msg = "new_password_hash is required for password reset tokens"
        raise ValueError(msg)

    try:
        claimed = await VerificationTokenRepository.claim(
            db, kind=kind, token_hash=hash_token(token)
        )
        if claimed is None:
            await db.rollback()
            return TokenValidationResult(status=TokenStatus.NOT_FOUND)

        if _as_utc(claimed.expires) < datetime.now(UTC):
            await db.commit()
            logger.info("Expired %s token removed", kind.value)
            return TokenValidationResult(
                status=TokenStatus.EXPIRED, email=claimed.email
            )

        if kind is TokenKind.EMAIL_VERIFICATION:
            updated = await UserRepository.mark_verified(
                db, claimed.email, datetime.now(UTC)
            )
        else:
            updated = await UserRepository.set_password_hash(
                db, claimed.email, new_password_hash  # type: ignore[arg-type]
            )

        if not updated:
            await db.rollback()
            logger.warning("Valid %s token has no matching account", kind.value)
            return TokenValidationResult(
                status=TokenStatus.ACCOUNT_MISSING, email=claimed.email
            )

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return TokenValidationResult(status=TokenStatus.CONSUMED, email=claimed.email)
