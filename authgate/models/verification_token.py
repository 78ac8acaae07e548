"""Verification token model - single-use email and password-reset tokens.

Single-use, time-limited. The stored ``token`` is the SHA-256 digest of
the value sent to the user, never the value itself.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from authgate.models.base import Base


class TokenKind(str, Enum):
    """What a verification token authorizes.

    Values:
        EMAIL_VERIFICATION: Marks the owning account as verified.
        PASSWORD_RESET: Replaces the owning account's password hash.
    """

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class VerificationToken(Base):
    """Single-use token bound to an email address.

    At most one live token exists per (kind, email): the unique constraint
    is the conflict target of the issuer's upsert.

    Attributes:
        token: SHA-256 hex digest of the plain token. Primary key.
        kind: ``"email_verification"`` or ``"password_reset"``.
        email: Owning account's email (convention only, no foreign key).
        expires: Absolute expiry timestamp (UTC).
    """

    __tablename__ = "verification_tokens"
    __table_args__ = (
        UniqueConstraint("kind", "email", name="uq_verification_tokens_kind_email"),
        CheckConstraint(
            "kind IN ('email_verification', 'password_reset')",
            name="ck_verification_tokens_kind",
        ),
        Index("idx_verification_tokens_expires", "expires"),
    )

    token: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    expires: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
