"""Delete expired verification and password-reset tokens.

Standalone operator script. Expired tokens are already rejected (and
removed) when someone tries to use them; this only reclaims rows for
tokens nobody ever came back for. Nothing schedules it.

Usage:
    python -m scripts.purge_expired_tokens
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from authgate.repositories.verification_token_repository import (
    VerificationTokenRepository,
)

logger = logging.getLogger(__name__)


async def purge_expired_tokens(session: AsyncSession) -> int:
    """Delete expired tokens. Caller commits.

    Returns:
        Number of rows deleted.
    """
    deleted = await VerificationTokenRepository.delete_expired(session)
    logger.info("Purged %d expired token(s)", deleted)
    return deleted


async def main() -> None:
    """CLI entry point: purge against the configured database."""
    from authgate.core.config import settings
    from authgate.core.database import Database

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    database = Database(settings.database_url)
    async with database.session_factory() as session:
        await purge_expired_tokens(session)
        await session.commit()

    await database.dispose()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
