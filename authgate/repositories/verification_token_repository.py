"""Repository for VerificationToken operations.

Single-use tokens stored as SHA-256 digests, keyed by digest and kind,
with time-limited expiry.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.models.verification_token import TokenKind, VerificationToken

# Dialects that support INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True)
class ClaimedToken:
    """Row data returned by an atomic claim.

    Attributes:
        email: Owning account's email.
        expires: Expiry timestamp as stored.
    """

    email: str
    expires: datetime


class VerificationTokenRepository:
    """Stateless repository for VerificationToken table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def replace(
        db: AsyncSession,
        *,
        kind: TokenKind,
        email: str,
        token_hash: str,
        expires: datetime,
    ) -> None:
        """Store a token as the only one of ``kind`` for ``email``.

        A single ``INSERT ... ON CONFLICT (kind, email) DO UPDATE``, so an
        older token is overwritten in place. Two requests issuing for the
        same email at once serialize on the unique index instead of the
        loser hitting an IntegrityError; the last writer's token survives.

        Args:
            db: Async database session.
            kind: What the token authorizes.
            email: Owning account's email.
            token_hash: SHA-256 hash of the plain token.
            expires: Token expiry timestamp.

        Raises:
            ValueError: The session is bound to a dialect without upsert.
        """
        dialect = db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            msg = f"Unsupported database dialect for token upsert: {dialect}"
            raise ValueError(msg)

        stmt = insert(VerificationToken).values(
            token=token_hash,
            kind=kind.value,
            email=email,
            expires=expires,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[VerificationToken.kind, VerificationToken.email],
            set_={"token": stmt.excluded.token, "expires": stmt.excluded.expires},
        )
        await db.execute(stmt)

    @staticmethod
    async def claim(
        db: AsyncSession,
        *,
        kind: TokenKind,
        token_hash: str,
    ) -> ClaimedToken | None:
        """Atomically delete a token and return what it held.

        ``DELETE ... RETURNING`` makes the store decide the race: of two
        concurrent claimants only one gets the row back, the other gets
        None. The deletion only becomes permanent when the caller commits.

        Args:
            db: Async database session.
            kind: What the token authorizes.
            token_hash: SHA-256 hash of the plain token.

        Returns:
            ClaimedToken if this call removed the row, None otherwise.
        """
        stmt = (
            delete(VerificationToken)
            .where(
                VerificationToken.token == token_hash,
                VerificationToken.kind == kind.value,
            )
            .returning(VerificationToken.email, VerificationToken.expires)
        )
        result = await db.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return ClaimedToken(email=row.email, expires=row.expires)

    @staticmethod
    async def delete_expired(db: AsyncSession) -> int:
        """Delete all expired tokens (operator cleanup, nothing schedules it).

        Args:
            db: Async database session.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationToken).where(
            VerificationToken.expires < datetime.now(UTC),
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
