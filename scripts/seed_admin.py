"""Create or promote an ADMIN account.

Standalone operator script. Run after migrations.

Usage:
    ADMIN_PASSWORD=... python -m scripts.seed_admin admin@example.com --name "Ops"

Behavior:
    - No account with the email: create a verified credential account
      with role ADMIN (password from ADMIN_PASSWORD, or prompted).
    - Account exists: set its role to ADMIN. Password and verification
      state are left alone.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from authgate.core.auth import hash_password, validate_password_strength
from authgate.models.user import User, UserRole
from authgate.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


async def seed_admin(
    session: AsyncSession,
    *,
    email: str,
    password: str | None,
    name: str | None = None,
) -> tuple[User, bool]:
    """Ensure ``email`` belongs to an ADMIN account.

    Args:
        session: Async database session. Caller commits.
        email: Admin email (matched exactly).
        password: Password for a new account. Ignored when promoting.
        name: Display name for a new account.

    Returns:
        (user, created)

    Raises:
        ValueError: A new account is needed but no password was given.
        RuntimeError: The account vanished between lookup and promotion.
        authgate.core.errors.ValidationError: Password fails strength rules.
    """
    existing = await UserRepository.get_by_email(session, email)
    if existing is not None:
        user = await UserRepository.set_role(session, existing.id, UserRole.ADMIN)
        if user is None:
            msg = f"Account {email} disappeared during promotion"
            raise RuntimeError(msg)
        logger.info("Promoted existing account to ADMIN")
        return user, False

    if not password:
        msg = "A password is required to create a new admin account"
        raise ValueError(msg)
    validate_password_strength(password)

    user = await UserRepository.create(
        session,
        email=email,
        name=name,
        password_hash=await hash_password(password),
        verified_at=datetime.now(UTC),
        role=UserRole.ADMIN,
    )
    logger.info("Created ADMIN account")
    return user, True


async def main() -> None:
    """CLI entry point: seed against the configured database."""
    import argparse
    import getpass
    import os

    from authgate.core.config import settings
    from authgate.core.database import Database

    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("--name", default=None)
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    database = Database(settings.database_url)
    async with database.session_factory() as session:
        existing = await UserRepository.get_by_email(session, args.email)
        password = None
        if existing is None:
            password = os.environ.get("ADMIN_PASSWORD") or getpass.getpass(
                "Admin password: "
            )
        _, created = await seed_admin(
            session, email=args.email, password=password, name=args.name
        )
        await session.commit()

    await database.dispose()
    logger.info("Done (%s)", "created" if created else "promoted")


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
