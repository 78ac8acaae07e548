"""Account model - OAuth provider connections.

Stores identity provider connections. Multiple rows per user (one per
provider). A user whose only rows here are OAuth rows and whose
password_hash is NULL is an OAuth-only account.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authgate.models.base import Base

if TYPE_CHECKING:
    from authgate.models.user import User


class Account(Base):
    """OAuth provider connection for a user.

    Provider access/refresh tokens are not stored; the provider handshake
    lives outside this service.

    Attributes:
        id: UUID primary key.
        user_id: FK to users table.
        type: Account type ("oauth").
        provider: Provider name ("google", ...).
        provider_account_id: Provider's unique user ID.
        created_at: Record creation timestamp.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_account_id", name="uq_accounts_provider_account"
        ),
        Index("idx_accounts_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="accounts")
