"""Credential authentication endpoints.

Register, sign in, verify email, and recover a password.

Security considerations:
- authenticate: unknown email and wrong password share one 401 payload;
  the unknown path still pays for a bcrypt comparison
- request-password-reset / resend-verification: identical response
  whether or not the account exists
- reset-password: one message for unknown and expired tokens
"""

import uuid
from datetime import datetime
from typing import Annotated

import structlog
from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

from authgate.api.deps import DbSession, Notifier
from authgate.core.auth import create_jwt, set_auth_cookie
from authgate.core.config import settings
from authgate.core.rate_limiting import limiter
from authgate.core.responses import DataResponse, MessageResponse
from authgate.services import credentials
from authgate.services.credentials import AccountSummary

logger = structlog.get_logger()

router = APIRouter()


# ===================================================================
# Request / response models
# ===================================================================


class _StrictBody(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RegisterRequest(_StrictBody):
    """Request body for POST /auth/register."""

    name: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)
    ]
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class AuthenticateRequest(_StrictBody):
    """Request body for POST /auth/authenticate."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class EmailRequest(_StrictBody):
    """Request body for endpoints that only take an email."""

    email: EmailStr


class ResetPasswordRequest(_StrictBody):
    """Request body for POST /auth/reset-password."""

    token: str = Field(min_length=1, max_length=256)
    password: str = Field(min_length=1, max_length=128)


class VerifyEmailRequest(_StrictBody):
    """Request body for POST /auth/verify-email."""

    token: str = Field(min_length=1, max_length=256)


class AccountSummaryResponse(BaseModel):
    """Account fields returned after sign-in and by /auth/me."""

    id: uuid.UUID
    email: str
    name: str | None
    role: str
    verified_at: datetime | None

    @classmethod
    def from_summary(cls, summary: AccountSummary) -> "AccountSummaryResponse":
        return cls(
            id=summary.id,
            email=summary.email,
            name=summary.name,
            role=summary.role,
            verified_at=summary.verified_at,
        )


# ===================================================================
# POST /auth/register
# ===================================================================


@router.post("/register", status_code=201)
@limiter.limit("3/hour")
async def register(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: RegisterRequest,
    db: DbSession,
    notifier: Notifier,
) -> DataResponse[MessageResponse]:
    """Create an unverified account and email a verification link.

    Returns 400 EMAIL_TAKEN if any account (password or OAuth) has the
    email. Sign-in stays blocked until the link is followed.

    Rate limit: 3 per hour per IP.
    """
    await credentials.register(db, notifier, body.name, body.email, body.password)
    return DataResponse(data=MessageResponse(message=credentials.REGISTERED_MSG))


# ===================================================================
# POST /auth/authenticate
# ===================================================================


@router.post("/authenticate")
@limiter.limit("5/15minute")
async def authenticate(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: AuthenticateRequest,
    response: Response,
    db: DbSession,
) -> DataResponse[AccountSummaryResponse]:
    """Check email + password and issue the session cookie.

    Returns 401 INVALID_CREDENTIALS, OAUTH_ONLY_ACCOUNT or
    EMAIL_NOT_VERIFIED on failure.

    Rate limit: 5 per 15 minutes per IP.
    """
    summary = await credentials.authenticate(db, body.email, body.password)

    token = create_jwt(
        user_id=str(summary.id),
        role=summary.role,
        secret=settings.auth_secret.get_secret_value(),
    )
    set_auth_cookie(response, token)
    logger.info("Session issued", user_id=str(summary.id))

    return DataResponse(data=AccountSummaryResponse.from_summary(summary))


# ===================================================================
# POST /auth/verify-email
# ===================================================================


@router.post("/verify-email")
@limiter.limit("10/minute")
async def verify_email(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerifyEmailRequest,
    db: DbSession,
) -> DataResponse[MessageResponse]:
    """Consume an email-verification token.

    Returns 400 INVALID_TOKEN or EXPIRED_TOKEN on failure.

    Rate limit: 10 per minute per IP.
    """
    await credentials.verify_email(db, body.token)
    return DataResponse(data=MessageResponse(message=credentials.EMAIL_VERIFIED_MSG))


# ===================================================================
# POST /auth/resend-verification
# ===================================================================


@router.post("/resend-verification")
@limiter.limit("5/hour")
async def resend_verification(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    db: DbSession,
    notifier: Notifier,
) -> DataResponse[MessageResponse]:
    """Send a fresh verification link. Same response for every email.

    Rate limit: 5 per hour per IP.
    """
    await credentials.resend_verification(db, notifier, body.email)
    return DataResponse(
        data=MessageResponse(message=credentials.RESEND_REQUESTED_MSG)
    )


# ===================================================================
# POST /auth/request-password-reset
# ===================================================================


@router.post("/request-password-reset")
@limiter.limit("5/hour")
async def request_password_reset(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    db: DbSession,
    notifier: Notifier,
) -> DataResponse[MessageResponse]:
    """Email a password-reset link if the account exists.

    Always returns the same 200 body (enumeration defense).

    Rate limit: 5 per hour per IP.
    """
    await credentials.request_password_reset(db, notifier, body.email)
    return DataResponse(data=MessageResponse(message=credentials.RESET_REQUESTED_MSG))


# ===================================================================
# POST /auth/reset-password
# ===================================================================


@router.post("/reset-password")
@limiter.limit("10/hour")
async def reset_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ResetPasswordRequest,
    db: DbSession,
) -> DataResponse[MessageResponse]:
    """Set a new password with a reset token.

    Returns 400 INVALID_OR_EXPIRED_TOKEN for unknown or expired tokens,
    400 VALIDATION_ERROR for a weak password.

    Rate limit: 10 per hour per IP.
    """
    await credentials.reset_password(db, body.token, body.password)
    return DataResponse(data=MessageResponse(message=credentials.PASSWORD_RESET_MSG))
