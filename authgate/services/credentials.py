"""Credential account workflow.

Sign-in, registration, email verification and password recovery for
email + password accounts. Endpoints call these functions and turn the
typed errors into HTTP responses; nothing here touches the request.

Enumeration defense:
- Unknown email and wrong password raise the same InvalidCredentialsError.
- The unknown-email path still runs a bcrypt comparison (DUMMY_HASH).
- Password-reset and resend-verification requests return normally
  whether or not the account exists; callers show one generic message.

Transactions: each function commits its own work. Notifications go out
after the commit, so a delivery failure leaves the token in place.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.core.auth import hash_password, validate_password_strength, verify_password
from authgate.core.email import NotificationSink
from authgate.core.errors import (
    EmailNotVerifiedError,
    EmailTakenError,
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidTokenError,
    OAuthOnlyAccountError,
    TokenTransitionError,
)
from authgate.models.user import User
from authgate.models.verification_token import TokenKind
from authgate.repositories.user_repository import UserRepository
from authgate.services.verification_tokens import (
    TokenStatus,
    issue_token,
    validate_token,
)

logger = logging.getLogger(__name__)

REGISTERED_MSG = "Account created. Check your email to verify your address."
RESET_REQUESTED_MSG = "If an account exists for that email, a reset link has been sent"
RESEND_REQUESTED_MSG = (
    "If an unverified account exists for that email, a new verification link "
    "has been sent"
)
PASSWORD_RESET_MSG = "Password has been reset"
EMAIL_VERIFIED_MSG = "Email verified"


@dataclass(frozen=True)
class AccountSummary:
    """Public view of an authenticated account.

    Attributes:
        id: Account UUID.
        email: Email as stored.
        name: Display name, if any.
        role: "USER" or "ADMIN".
        verified_at: When the email was verified.
    """

    id: uuid.UUID
    email: str
    name: str | None
    role: str
    verified_at: datetime | None

    @classmethod
    def from_user(cls, user: User) -> "AccountSummary":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            verified_at=user.verified_at,
        )


# =============================================================================
# Sign-in
# =============================================================================


async def authenticate(db: AsyncSession, email: str, password: str) -> AccountSummary:
    """Check an email + password pair.

    Order of checks:
    1. Unknown email: dummy bcrypt comparison, then InvalidCredentialsError.
    2. No password hash (OAuth-only account): OAuthOnlyAccountError.
    3. Email not verified: EmailNotVerifiedError, before any comparison.
    4. Wrong password: InvalidCredentialsError.

    Args:
        db: Async database session.
        email: Email as typed (matched exactly).
        password: Plain-text password.

    Returns:
        AccountSummary for the account.

    Raises:
        InvalidCredentialsError: Unknown email or wrong password.
        OAuthOnlyAccountError: Account has no password.
        EmailNotVerifiedError: Account has not verified its email.
    """
    user = await UserRepository.get_by_email(db, email)

    if user is None:
        # Security: same bcrypt cost as a real comparison.
        await verify_password(password, None)
        raise InvalidCredentialsError()

    if user.password_hash is None:
        raise OAuthOnlyAccountError()

    if user.verified_at is None:
        raise EmailNotVerifiedError()

    if not await verify_password(password, user.password_hash):
        raise InvalidCredentialsError()

    return AccountSummary.from_user(user)


# =============================================================================
# Registration
# =============================================================================


async def register(
    db: AsyncSession,
    sink: NotificationSink,
    name: str,
    email: str,
    password: str,
) -> None:
    """Create an unverified credential account and send its verification link.

    Args:
        db: Async database session.
        sink: Where the verification token is delivered.
        name: Display name.
        email: Account email (stored exactly as given).
        password: Plain-text password; strength rules are enforced here.

    Raises:
        ValidationError: Password fails strength rules.
        EmailTakenError: Any account (credential or OAuth) holds the email.
        NotificationError: Account was created but the email failed to send.
    """
    validate_password_strength(password)

    if await UserRepository.email_exists(db, email):
        raise EmailTakenError()

    password_hash = await hash_password(password)

    try:
        await UserRepository.create(
            db, email=email, name=name, password_hash=password_hash
        )
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email.
        await db.rollback()
        raise EmailTakenError() from exc

    token = await issue_token(db, TokenKind.EMAIL_VERIFICATION, email)
    await db.commit()
    logger.info("Registered credential account")

    await sink.send(TokenKind.EMAIL_VERIFICATION, email, token, name)


# =============================================================================
# Email verification
# =============================================================================


async def verify_email(db: AsyncSession, token: str) -> None:
    """Consume an email-verification token.

    Raises:
        InvalidTokenError: Unknown or already-used token.
        ExpiredTokenError: Token was past its expiry (and is now deleted).
        TokenTransitionError: No account holds the token's email.
    """
    result = await validate_token(db, TokenKind.EMAIL_VERIFICATION, token)

    if result.status is TokenStatus.NOT_FOUND:
        raise InvalidTokenError()
    if result.status is TokenStatus.EXPIRED:
        raise ExpiredTokenError()
    if result.status is TokenStatus.ACCOUNT_MISSING:
        raise TokenTransitionError()


async def resend_verification(
    db: AsyncSession, sink: NotificationSink, email: str
) -> None:
    """Issue a fresh verification token for an unverified credential account.

    Does nothing (and raises nothing) when the account is missing, already
    verified, or OAuth-only. The previous verification token stops working.
    """
    user = await UserRepository.get_by_email(db, email)
    if user is None or user.password_hash is None or user.verified_at is not None:
        return

    token = await issue_token(db, TokenKind.EMAIL_VERIFICATION, email)
    await db.commit()
    await sink.send(TokenKind.EMAIL_VERIFICATION, email, token, user.name)


# =============================================================================
# Password recovery
# =============================================================================


async def request_password_reset(
    db: AsyncSession, sink: NotificationSink, email: str
) -> None:
    """Send a password-reset link if an account holds ``email``.

    OAuth-only accounts are included: completing the reset gives them a
    password. Returns normally either way.

    Raises:
        NotificationError: Token was stored but the email failed to send.
    """
    user = await UserRepository.get_by_email(db, email)
    if user is None:
        return

    token = await issue_token(db, TokenKind.PASSWORD_RESET, email)
    await db.commit()
    await sink.send(TokenKind.PASSWORD_RESET, email, token, user.name)


async def reset_password(db: AsyncSession, token: str, password: str) -> None:
    """Set a new password using a password-reset token.

    The new password is checked and hashed before the token is touched, so
    a rejected password leaves the token usable.

    Raises:
        ValidationError: New password fails strength rules.
        InvalidOrExpiredTokenError: Unknown, used or expired token.
        TokenTransitionError: No account holds the token's email.
    """
    validate_password_strength(password)
    password_hash = await hash_password(password)

    result = await validate_token(
        db, TokenKind.PASSWORD_RESET, token, new_password_hash=password_hash
    )

    if result.status is TokenStatus.ACCOUNT_MISSING:
        raise TokenTransitionError()
    if not result.ok:
        raise InvalidOrExpiredTokenError()
