"""Shared dependencies for API endpoints.

Database session, notification sink, and session-cookie authentication.

WHY DEPENDENCY INJECTION:
- The database handle and sink are built once in the app lifespan
- Endpoints stay free of global state
- Tests swap both through app.dependency_overrides
"""

import uuid
from typing import Annotated

import jwt
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.core.auth import decode_jwt
from authgate.core.config import settings
from authgate.core.database import get_db
from authgate.core.email import NotificationSink
from authgate.core.errors import AdminRequiredError, UnauthorizedError
from authgate.models import User
from authgate.repositories.user_repository import UserRepository


def get_notification_sink(request: Request) -> NotificationSink:
    """Return the sink created at startup (see main.lifespan)."""
    return request.app.state.notifier


def get_current_user_id(request: Request) -> uuid.UUID:
    """Get current user ID from the session cookie.

    Validation steps:
    1. Read JWT from cookie
    2. Decode + verify signature (HS256), exp, aud, iss
    3. Extract sub as UUID

    Args:
        request: HTTP request (injected by FastAPI).

    Returns:
        UUID of the signed-in user.

    Raises:
        UnauthorizedError: For any auth failure.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise UnauthorizedError()

    # Security: never say WHY the token was rejected.
    try:
        payload = decode_jwt(token, secret=settings.auth_secret.get_secret_value())
        return uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError, TypeError) as exc:
        raise UnauthorizedError() from exc


async def get_current_user(
    user_id: Annotated[uuid.UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get full User object for current user.

    Raises:
        UnauthorizedError: If the account no longer exists.
    """
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise UnauthorizedError()
    return user


async def require_admin(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Allow only accounts whose stored role is ADMIN.

    The role is read from the database, not from the JWT claim, so a
    demotion takes effect before the session expires.

    Raises:
        UnauthorizedError: Not signed in.
        AdminRequiredError: Signed in without the ADMIN role.
    """
    if not user.is_admin:
        raise AdminRequiredError()
    return user


# Reusable type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Notifier = Annotated[NotificationSink, Depends(get_notification_sink)]
