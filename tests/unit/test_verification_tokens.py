"""Tests for single-use token issuing and validation.

Covers the live-token uniqueness rule, exactly-once consumption, lazy
expiry, and the rollback when the owning account is gone.
"""

import hashlib
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.core.auth import hash_password, verify_password
from authgate.core.database import Database
from authgate.models.user import User
from authgate.models.verification_token import TokenKind, VerificationToken
from authgate.repositories.user_repository import UserRepository
from authgate.repositories.verification_token_repository import (
    VerificationTokenRepository,
)
from authgate.services.verification_tokens import (
    TokenStatus,
    hash_token,
    issue_token,
    token_ttl,
    validate_token,
)
from tests.conftest import (
    TEST_EMAIL,
    TEST_PASSWORD,
    count_tokens,
    create_user,
    get_stored_token,
)


async def _expire(db: AsyncSession, kind: TokenKind, email: str) -> None:
    await db.execute(
        update(VerificationToken)
        .where(VerificationToken.kind == kind.value, VerificationToken.email == email)
        .values(expires=datetime.now(UTC) - timedelta(seconds=1))
    )
    await db.commit()


async def _reload(db: AsyncSession, email: str) -> User:
    db.expire_all()
    user = await UserRepository.get_by_email(db, email)
    assert user is not None
    return user


class TestIssueToken:
    """Tests for issue_token()."""

    async def test_stores_digest_not_plain_value(self, db_session: AsyncSession):
        plain = await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await db_session.commit()

        stored = await get_stored_token(
            db_session,
            kind=TokenKind.EMAIL_VERIFICATION,
            token_hash=hashlib.sha256(plain.encode()).hexdigest(),
        )
        assert stored is not None
        assert stored.token != plain
        assert stored.email == TEST_EMAIL

    async def test_plain_tokens_are_unpredictable(self, db_session: AsyncSession):
        first = await issue_token(db_session, TokenKind.PASSWORD_RESET, TEST_EMAIL)
        second = await issue_token(db_session, TokenKind.PASSWORD_RESET, TEST_EMAIL)
        assert first != second
        assert len(first) >= 43

    async def test_issuing_twice_leaves_one_live_token(self, db_session: AsyncSession):
        first = await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await db_session.commit()
        second = await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await db_session.commit()

        count = await count_tokens(
            db_session, kind=TokenKind.EMAIL_VERIFICATION, email=TEST_EMAIL
        )
        assert count == 1
        assert (
            await get_stored_token(
                db_session,
                kind=TokenKind.EMAIL_VERIFICATION,
                token_hash=hash_token(first),
            )
            is None
        )
        assert (
            await get_stored_token(
                db_session,
                kind=TokenKind.EMAIL_VERIFICATION,
                token_hash=hash_token(second),
            )
            is not None
        )

    async def test_kinds_do_not_replace_each_other(self, db_session: AsyncSession):
        await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await issue_token(db_session, TokenKind.PASSWORD_RESET, TEST_EMAIL)
        await db_session.commit()

        for kind in TokenKind:
            count = await count_tokens(
                db_session, kind=kind, email=TEST_EMAIL
            )
            assert count == 1

    async def test_replace_overwrites_existing_row(self, db_session: AsyncSession):
        expires = datetime.now(UTC) + timedelta(hours=1)
        for token_hash in ("a" * 64, "b" * 64):
            await VerificationTokenRepository.replace(
                db_session,
                kind=TokenKind.PASSWORD_RESET,
                email=TEST_EMAIL,
                token_hash=token_hash,
                expires=expires,
            )
        await db_session.commit()

        assert (
            await count_tokens(
                db_session, kind=TokenKind.PASSWORD_RESET, email=TEST_EMAIL
            )
            == 1
        )
        assert (
            await get_stored_token(
                db_session, kind=TokenKind.PASSWORD_RESET, token_hash="b" * 64
            )
            is not None
        )

    async def test_issuing_from_two_sessions_keeps_latest(self, database: Database):
        async with database.session_factory() as first_session:
            first = await issue_token(
                first_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL
            )
            async with database.session_factory() as second_session:
                await first_session.commit()
                second = await issue_token(
                    second_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL
                )
                await second_session.commit()

        async with database.session_factory() as session:
            assert (
                await count_tokens(
                    session, kind=TokenKind.EMAIL_VERIFICATION, email=TEST_EMAIL
                )
                == 1
            )
            assert (
                await get_stored_token(
                    session,
                    kind=TokenKind.EMAIL_VERIFICATION,
                    token_hash=hash_token(first),
                )
                is None
            )
            assert (
                await get_stored_token(
                    session,
                    kind=TokenKind.EMAIL_VERIFICATION,
                    token_hash=hash_token(second),
                )
                is not None
            )

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            (TokenKind.EMAIL_VERIFICATION, timedelta(hours=24)),
            (TokenKind.PASSWORD_RESET, timedelta(hours=1)),
        ],
    )
    async def test_expiry_per_kind(
        self, db_session: AsyncSession, kind: TokenKind, expected: timedelta
    ):
        assert token_ttl(kind) == expected

        before = datetime.now(UTC)
        plain = await issue_token(db_session, kind, TEST_EMAIL)
        await db_session.commit()

        stored = await get_stored_token(
            db_session, kind=kind, token_hash=hash_token(plain)
        )
        assert stored is not None
        expires = stored.expires.replace(tzinfo=stored.expires.tzinfo or UTC)
        assert before + expected - timedelta(seconds=5) <= expires
        assert expires <= datetime.now(UTC) + expected


class TestValidateEmailVerificationToken:
    """Tests for validate_token() with EMAIL_VERIFICATION tokens."""

    async def test_consumes_token_and_marks_verified(self, db_session: AsyncSession):
        await create_user(db_session, verified=False)
        plain = await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await db_session.commit()

        result = await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, plain)

        assert result.status is TokenStatus.CONSUMED
        assert result.ok
        assert result.email == TEST_EMAIL
        user = await _reload(db_session, TEST_EMAIL)
        assert user.verified_at is not None
        assert (
            await count_tokens(
                db_session, kind=TokenKind.EMAIL_VERIFICATION, email=TEST_EMAIL
            )
            == 0
        )

    async def test_second_validation_is_not_found(self, db_session: AsyncSession):
        await create_user(db_session, verified=False)
        plain = await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await db_session.commit()

        first = await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, plain)
        second = await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, plain)

        assert first.status is TokenStatus.CONSUMED
        assert second.status is TokenStatus.NOT_FOUND
        assert second.email is None

    async def test_unknown_token_is_not_found(self, db_session: AsyncSession):
        result = await validate_token(
            db_session, TokenKind.EMAIL_VERIFICATION, "never-issued"
        )
        assert result.status is TokenStatus.NOT_FOUND

    async def test_replaced_token_is_not_found(self, db_session: AsyncSession):
        await create_user(db_session, verified=False)
        old = await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await db_session.commit()

        result = await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, old)
        assert result.status is TokenStatus.NOT_FOUND

    async def test_token_of_other_kind_is_not_found(self, db_session: AsyncSession):
        await create_user(db_session, verified=False)
        plain = await issue_token(db_session, TokenKind.PASSWORD_RESET, TEST_EMAIL)
        await db_session.commit()

        result = await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, plain)

        assert result.status is TokenStatus.NOT_FOUND
        # The reset token was not consumed by the mismatched attempt
        assert (
            await count_tokens(
                db_session, kind=TokenKind.PASSWORD_RESET, email=TEST_EMAIL
            )
            == 1
        )

    async def test_expired_token_is_removed(self, db_session: AsyncSession):
        await create_user(db_session, verified=False)
        plain = await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await db_session.commit()
        await _expire(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)

        expired = await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, plain)
        again = await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, plain)

        assert expired.status is TokenStatus.EXPIRED
        assert again.status is TokenStatus.NOT_FOUND
        user = await _reload(db_session, TEST_EMAIL)
        assert user.verified_at is None

    async def test_missing_account_keeps_token(self, db_session: AsyncSession):
        plain = await issue_token(
            db_session, TokenKind.EMAIL_VERIFICATION, "ghost@example.com"
        )
        await db_session.commit()

        result = await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, plain)

        assert result.status is TokenStatus.ACCOUNT_MISSING
        assert result.email == "ghost@example.com"
        assert (
            await count_tokens(
                db_session,
                kind=TokenKind.EMAIL_VERIFICATION,
                email="ghost@example.com",
            )
            == 1
        )

    async def test_retry_after_account_appears_succeeds(
        self, db_session: AsyncSession
    ):
        """A token rejected for a missing account is still usable later."""
        plain = await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await db_session.commit()
        missing = await validate_token(
            db_session, TokenKind.EMAIL_VERIFICATION, plain
        )
        await create_user(db_session, verified=False)

        retried = await validate_token(
            db_session, TokenKind.EMAIL_VERIFICATION, plain
        )

        assert missing.status is TokenStatus.ACCOUNT_MISSING
        assert retried.status is TokenStatus.CONSUMED

    async def test_email_match_is_case_sensitive(self, db_session: AsyncSession):
        await create_user(db_session, email="Alice@example.com", verified=False)
        plain = await issue_token(
            db_session, TokenKind.EMAIL_VERIFICATION, "alice@example.com"
        )
        await db_session.commit()

        result = await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, plain)

        assert result.status is TokenStatus.ACCOUNT_MISSING


class TestValidatePasswordResetToken:
    """Tests for validate_token() with PASSWORD_RESET tokens."""

    async def test_replaces_password_hash(self, db_session: AsyncSession):
        await create_user(db_session)
        plain = await issue_token(db_session, TokenKind.PASSWORD_RESET, TEST_EMAIL)
        await db_session.commit()
        new_hash = await hash_password("brandnew42")

        result = await validate_token(
            db_session, TokenKind.PASSWORD_RESET, plain, new_password_hash=new_hash
        )

        assert result.status is TokenStatus.CONSUMED
        user = await _reload(db_session, TEST_EMAIL)
        assert await verify_password("brandnew42", user.password_hash)
        assert not await verify_password(TEST_PASSWORD, user.password_hash)

    async def test_expired_leaves_password_unchanged(self, db_session: AsyncSession):
        await create_user(db_session)
        plain = await issue_token(db_session, TokenKind.PASSWORD_RESET, TEST_EMAIL)
        await db_session.commit()
        await _expire(db_session, TokenKind.PASSWORD_RESET, TEST_EMAIL)

        result = await validate_token(
            db_session,
            TokenKind.PASSWORD_RESET,
            plain,
            new_password_hash=await hash_password("brandnew42"),
        )

        assert result.status is TokenStatus.EXPIRED
        user = await _reload(db_session, TEST_EMAIL)
        assert await verify_password(TEST_PASSWORD, user.password_hash)

    async def test_requires_new_password_hash(self, db_session: AsyncSession):
        with pytest.raises(ValueError, match="new_password_hash"):
            await validate_token(db_session, TokenKind.PASSWORD_RESET, "anything")

    async def test_does_not_touch_verification_state(self, db_session: AsyncSession):
        await create_user(db_session, verified=False)
        plain = await issue_token(db_session, TokenKind.PASSWORD_RESET, TEST_EMAIL)
        await db_session.commit()

        await validate_token(
            db_session,
            TokenKind.PASSWORD_RESET,
            plain,
            new_password_hash=await hash_password("brandnew42"),
        )

        user = await _reload(db_session, TEST_EMAIL)
        assert user.verified_at is None


class TestStoreFailure:
    """Store errors during the transition leave the token in place."""

    async def test_error_rolls_back_claim(
        self, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
    ):
        await create_user(db_session, verified=False)
        plain = await issue_token(db_session, TokenKind.EMAIL_VERIFICATION, TEST_EMAIL)
        await db_session.commit()

        async def _boom(*_args, **_kwargs):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(UserRepository, "mark_verified", _boom)

        with pytest.raises(RuntimeError, match="store unavailable"):
            await validate_token(db_session, TokenKind.EMAIL_VERIFICATION, plain)

        assert (
            await count_tokens(
                db_session, kind=TokenKind.EMAIL_VERIFICATION, email=TEST_EMAIL
            )
            == 1
        )
