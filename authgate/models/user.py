"""User model - the account record.

Holds the credential hash, verification timestamp and role. Mutated by the
credential service and by single-use token consumption.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authgate.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from authgate.models.account import Account


class UserRole(str, Enum):
    """Account role. Only the binary admin distinction is modelled.

    Values:
        USER: Default role for every new account.
        ADMIN: May reach admin-only endpoints.
    """

    USER = "USER"
    ADMIN = "ADMIN"


class User(Base, TimestampMixin):
    """User account for authentication.

    Attributes:
        id: UUID primary key.
        email: Unique email address, stored exactly as submitted.
        name: Display name (from registration or OAuth provider).
        password_hash: bcrypt hash. NULL for OAuth-only users.
        verified_at: Timestamp when email was verified. NULL = unverified.
        role: "USER" or "ADMIN" (see UserRole).
        image: Profile picture URL from OAuth provider.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('USER', 'ADMIN')", name="ck_users_role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    role: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=UserRole.USER.value,
        server_default=UserRole.USER.value,
    )
    image: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
    )

    # Relationships
    accounts: Mapped[list["Account"]] = relationship(
        "Account",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        """Whether the account carries the ADMIN role."""
        return self.role == UserRole.ADMIN.value
