"""Linking OAuth provider identities to accounts.

A provider sign-in resolves to an account in one of three ways:
1. Provider + provider_account_id already linked: returning user
2. Email already held by an account: link, but only when the provider
   verified the email AND the account has verified it too
3. Email unknown: new account with no password and role USER

Emails are matched exactly as stored, the same way credential sign-in
matches them.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from authgate.models.user import User
from authgate.repositories.account_repository import AccountRepository
from authgate.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class AccountLinkingBlockedError(Exception):
    """An account holds the email but linking it would be unsafe.

    Pre-hijack defense: someone could register a victim's email with a
    password and wait for the victim's first OAuth sign-in to merge into
    it. Linking therefore requires verification on both sides.
    """


async def find_or_create_user_for_oauth(
    *,
    db: AsyncSession,
    email: str,
    email_verified_by_provider: bool,
    provider: str,
    provider_account_id: str,
    name: str | None = None,
    image: str | None = None,
) -> tuple[User, bool]:
    """Resolve a provider identity to an account.

    Flushes but does not commit; the caller owns the transaction.

    Args:
        db: Async database session.
        email: Email address reported by the provider.
        email_verified_by_provider: Whether the provider vouches for the email.
        provider: Provider name (e.g., "google").
        provider_account_id: Provider's stable user identifier.
        name: Display name from the provider.
        image: Profile picture URL from the provider.

    Returns:
        (user, created) where created is True for a brand-new account.

    Raises:
        AccountLinkingBlockedError: Email is taken and one side is unverified.
    """
    linked = await AccountRepository.get_by_provider_and_account_id(
        db, provider, provider_account_id
    )
    if linked:
        user = await UserRepository.get_by_id(db, linked.user_id)
        if user:
            logger.info(
                "Returning OAuth user",
                extra={"user_id": str(user.id), "provider": provider},
            )
            return user, False

    existing = await UserRepository.get_by_email(db, email)
    if existing:
        if email_verified_by_provider and existing.verified_at is not None:
            await AccountRepository.create(
                db,
                user_id=existing.id,
                provider=provider,
                provider_account_id=provider_account_id,
            )
            logger.info(
                "Linked OAuth identity to existing account",
                extra={"user_id": str(existing.id), "provider": provider},
            )
            return existing, False

        logger.warning(
            "OAuth account linking blocked by email verification",
            extra={
                "provider": provider,
                "provider_verified": email_verified_by_provider,
                "existing_verified": existing.verified_at is not None,
            },
        )
        msg = (
            "An account with this email already exists. "
            "Sign in with your original method first."
        )
        raise AccountLinkingBlockedError(msg)

    user = await UserRepository.create(
        db,
        email=email,
        name=name,
        image=image,
        verified_at=datetime.now(UTC) if email_verified_by_provider else None,
    )
    await AccountRepository.create(
        db,
        user_id=user.id,
        provider=provider,
        provider_account_id=provider_account_id,
    )

    logger.info(
        "Created account from OAuth identity",
        extra={"user_id": str(user.id), "provider": provider},
    )
    return user, True
