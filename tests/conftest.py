import uuid
from collections.abc import AsyncGenerator, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.core.auth import hash_password
from authgate.core.config import settings
from authgate.core.database import Database
from authgate.core.errors import NotificationError
from authgate.models.base import Base
from authgate.models.user import User, UserRole
from authgate.models.verification_token import TokenKind, VerificationToken

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

TEST_EMAIL = "alice@example.com"
TEST_PASSWORD = "secret123"  # nosec B105
TEST_NAME = "Alice"

# Low cost factor for fast tests
_TEST_BCRYPT_ROUNDS = 4


def create_test_jwt(
    user_id: uuid.UUID,
    *,
    role: str = "USER",
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session JWT for test authentication.

    Args:
        user_id: User UUID to encode in the sub claim.
        role: Role claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "role": role,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


# =============================================================================
# Notification sink double
# =============================================================================


@dataclass(frozen=True)
class SentNotification:
    kind: TokenKind
    email: str
    token: str
    name: str | None


class RecordingSink:
    """In-memory NotificationSink that records every send.

    Set ``fail = True`` to make the next sends raise NotificationError.
    """

    def __init__(self) -> None:
        self.sent: list[SentNotification] = []
        self.fail = False

    async def send(
        self,
        kind: TokenKind,
        email: str,
        token: str,
        name: str | None = None,
    ) -> None:
        if self.fail:
            raise NotificationError()
        self.sent.append(SentNotification(kind, email, token, name))

    def last_token(self, kind: TokenKind) -> str:
        """Most recent plain token of ``kind``."""
        matching = [n for n in self.sent if n.kind is kind]
        assert matching, f"no {kind.value} notification was sent"
        return matching[-1].token


# =============================================================================
# Settings and rate limiting
# =============================================================================


@pytest.fixture(autouse=True)
def _test_settings() -> Iterator[None]:
    """Test secret and cheap bcrypt for every test."""
    original_secret = settings.auth_secret
    original_rounds = settings.bcrypt_rounds
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)
    settings.bcrypt_rounds = _TEST_BCRYPT_ROUNDS
    yield
    settings.auth_secret = original_secret
    settings.bcrypt_rounds = original_rounds


@pytest.fixture(autouse=True)
def _disable_rate_limiting() -> Iterator[None]:
    """Disable slowapi so repeated calls in one test are not throttled.

    Returns:
        None (autouse fixture).
    """
    from authgate.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False
    yield
    limiter.enabled = original_enabled


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Fresh SQLite database per test, schema from the ORM metadata."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'authgate.db'}")
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with database.session_factory() as session:
        yield session


async def create_user(
    db: AsyncSession,
    *,
    email: str = TEST_EMAIL,
    password: str | None = TEST_PASSWORD,
    name: str | None = TEST_NAME,
    verified: bool = True,
    role: UserRole = UserRole.USER,
) -> User:
    """Insert and commit a user. ``password=None`` makes an OAuth-only account."""
    user = User(
        email=email,
        name=name,
        password_hash=await hash_password(password) if password else None,
        verified_at=datetime.now(UTC) if verified else None,
        role=role.value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_stored_token(
    db: AsyncSession, *, kind: TokenKind, token_hash: str
) -> VerificationToken | None:
    """Read a stored token row without consuming it."""
    result = await db.execute(
        select(VerificationToken).where(
            VerificationToken.token == token_hash,
            VerificationToken.kind == kind.value,
        )
    )
    return result.scalar_one_or_none()


async def count_tokens(db: AsyncSession, *, kind: TokenKind, email: str) -> int:
    """Count stored tokens of ``kind`` for an email (live or expired)."""
    result = await db.execute(
        select(func.count()).where(
            VerificationToken.kind == kind.value,
            VerificationToken.email == email,
        )
    )
    return int(result.scalar_one())


@pytest_asyncio.fixture
async def verified_user(db_session: AsyncSession) -> User:
    """Verified credential account for TEST_EMAIL / TEST_PASSWORD."""
    return await create_user(db_session)


# =============================================================================
# HTTP client
# =============================================================================


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest_asyncio.fixture
async def client(
    database: Database, sink: RecordingSink
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the test database and recording sink.

    ASGITransport does not run the lifespan, so the database handle is
    placed on app.state directly and the sink goes in via a dependency
    override. https base URL so the Secure session cookie round-trips.

    Yields:
        AsyncClient without a session cookie.
    """
    from authgate.api.deps import get_notification_sink
    from authgate.main import app

    app.state.database = database
    app.dependency_overrides[get_notification_sink] = lambda: sink

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.database
