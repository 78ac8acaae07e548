"""Repository for User CRUD operations.

Provides database access for the users table.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.models.user import User, UserRole


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (exact, case-sensitive match).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        """Check whether any account (credential or OAuth) holds this email."""
        stmt = select(User.id).where(User.email == email)
        result = await db.execute(stmt)
        return result.first() is not None

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        name: str | None = None,
        password_hash: str | None = None,
        verified_at: datetime | None = None,
        image: str | None = None,
        role: UserRole = UserRole.USER,
    ) -> User:
        """Create a new user.

        Args:
            db: Async database session.
            email: User email address.
            name: Display name.
            password_hash: bcrypt hash (None for OAuth-only users).
            verified_at: Timestamp when email was verified.
            image: Profile picture URL.
            role: Account role. Defaults to USER.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(
            email=email,
            name=name,
            password_hash=password_hash,
            verified_at=verified_at,
            image=image,
            role=role.value,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def mark_verified(db: AsyncSession, email: str, when: datetime) -> bool:
        """Set verified_at for the account holding ``email``.

        Args:
            db: Async database session.
            email: Account email.
            when: Verification timestamp.

        Returns:
            True if a row was updated, False if no account has that email.
        """
        stmt = update(User).where(User.email == email).values(verified_at=when)
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def set_password_hash(
        db: AsyncSession, email: str, password_hash: str
    ) -> bool:
        """Replace the password hash for the account holding ``email``.

        Args:
            db: Async database session.
            email: Account email.
            password_hash: New bcrypt hash.

        Returns:
            True if a row was updated, False if no account has that email.
        """
        stmt = (
            update(User).where(User.email == email).values(password_hash=password_hash)
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def set_role(
        db: AsyncSession, user_id: uuid.UUID, role: UserRole
    ) -> User | None:
        """Set the role for a user.

        Only call from explicit admin promotion paths.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            role: New role.

        Returns:
            Updated User if found, None if user does not exist.
        """
        user = await db.get(User, user_id)
        if user is None:
            return None
        user.role = role.value
        await db.flush()
        await db.refresh(user)
        return user
