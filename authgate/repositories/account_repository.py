"""Repository for Account CRUD operations.

Provides database access for the accounts table (OAuth provider links).
Follows the repository pattern established by UserRepository.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.models.account import Account


class AccountRepository:
    """Stateless repository for Account table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        provider: str,
        provider_account_id: str,
        type: str = "oauth",
    ) -> Account:
        """Create a new account record linking a provider to a user.

        Args:
            db: Async database session.
            user_id: FK to users table.
            provider: Provider name ("google", ...).
            provider_account_id: Provider's unique user identifier.
            type: Account type. Defaults to "oauth".

        Returns:
            Created Account with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If provider+account_id already exists.
        """
        account = Account(
            user_id=user_id,
            type=type,
            provider=provider,
            provider_account_id=provider_account_id,
        )
        db.add(account)
        await db.flush()
        await db.refresh(account)
        return account

    @staticmethod
    async def get_by_provider_and_account_id(
        db: AsyncSession,
        provider: str,
        provider_account_id: str,
    ) -> Account | None:
        """Find an account by provider name and provider's user ID.

        Used to identify returning users: if the provider + account ID
        already exists, we know which user this is (regardless of email).

        Args:
            db: Async database session.
            provider: Provider name (e.g., "google").
            provider_account_id: Provider's unique user identifier.

        Returns:
            Account if found, None otherwise.
        """
        stmt = select(Account).where(
            Account.provider == provider,
            Account.provider_account_id == provider_account_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_accounts_by_user_id(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> list[Account]:
        """List all accounts linked to a user.

        Args:
            db: Async database session.
            user_id: UUID of the user.

        Returns:
            List of Account records (may be empty).
        """
        stmt = select(Account).where(Account.user_id == user_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())
