"""SQLAlchemy ORM models for authgate.

All models are exported from this module for convenient imports:
    from authgate.models import User, Account, VerificationToken

- user.py: User, UserRole
- account.py: Account (OAuth provider connection)
- verification_token.py: VerificationToken, TokenKind
"""

from authgate.models.account import Account
from authgate.models.base import Base, TimestampMixin
from authgate.models.user import User, UserRole
from authgate.models.verification_token import TokenKind, VerificationToken

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Auth
    "Account",
    "TokenKind",
    "User",
    "UserRole",
    "VerificationToken",
]
