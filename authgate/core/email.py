"""Email sending via Resend API.

Simple HTTP POST to Resend for verification and password-reset emails.
Uses plain-text email format.

The workflow talks to a ``NotificationSink``; ``ResendNotificationSink``
is the production implementation. Unlike a fire-and-forget background
task, a failed send raises ``NotificationError`` so the caller can report
it (the token has already been stored and is not rolled back).
"""

import logging
from typing import Protocol
from urllib.parse import quote, urlencode

import httpx

from authgate.core.config import settings
from authgate.core.errors import NotificationError
from authgate.models.verification_token import TokenKind

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


class NotificationSink(Protocol):
    """Delivers a plain token to the owner of an email address."""

    async def send(
        self,
        kind: TokenKind,
        email: str,
        token: str,
        name: str | None = None,
    ) -> None:
        """Deliver ``token`` to ``email``.

        Raises:
            NotificationError: If delivery failed.
        """
        ...


def build_link(kind: TokenKind, token: str) -> str:
    """Build the frontend URL the user clicks for a given token kind.

    Args:
        kind: What the token authorizes.
        token: Plain (unhashed) token.

    Returns:
        Absolute URL on the frontend.
    """
    path = "/verify" if kind is TokenKind.EMAIL_VERIFICATION else "/reset-password"
    params = urlencode({"token": token}, quote_via=quote)
    return f"{settings.frontend_url}{path}?{params}"


def _compose(
    kind: TokenKind, token: str, name: str | None, ttl_text: str
) -> tuple[str, str]:
    greeting = f"Hi {name},\n\n" if name else ""
    link = build_link(kind, token)
    if kind is TokenKind.EMAIL_VERIFICATION:
        subject = "Verify your email address"
        body = (
            f"{greeting}Click this link to verify your email address:\n\n{link}\n\n"
            f"This link expires in {ttl_text}. "
            "If you didn't create an account, you can safely ignore this email."
        )
    else:
        subject = "Reset your password"
        body = (
            f"{greeting}Click this link to choose a new password:\n\n{link}\n\n"
            f"This link expires in {ttl_text}. "
            "If you didn't request this, you can safely ignore this email."
        )
    return subject, body


class ResendNotificationSink:
    """NotificationSink backed by the Resend HTTP API.

    Args:
        api_key: Resend API key.
        sender: From address.
        client: Optional shared ``httpx.AsyncClient``. When omitted a client
            is created per send.
    """

    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._client = client

    async def send(
        self,
        kind: TokenKind,
        email: str,
        token: str,
        name: str | None = None,
    ) -> None:
        """Send a verification or password-reset email.

        Raises:
            NotificationError: Resend rejected the request or was unreachable.
        """
        if kind is TokenKind.EMAIL_VERIFICATION:
            ttl_text = f"{settings.email_verification_ttl_hours} hours"
        else:
            ttl_text = f"{settings.password_reset_ttl_minutes} minutes"
        subject, text = _compose(kind, token, name, ttl_text)
        payload = {
            "from": self._sender,
            "to": email,
            "subject": subject,
            "text": text,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            if self._client is not None:
                await self._post(self._client, headers, payload)
            else:
                async with httpx.AsyncClient() as client:
                    await self._post(client, headers, payload)
        except httpx.HTTPError as exc:
            logger.warning(
                "Failed to send %s email",
                kind.value,
                extra={"to_email": email},
                exc_info=True,
            )
            raise NotificationError() from exc

    @staticmethod
    async def _post(
        client: httpx.AsyncClient, headers: dict[str, str], payload: dict[str, str]
    ) -> None:
        resp = await client.post(
            _RESEND_API_URL,
            headers=headers,
            json=payload,
            timeout=_RESEND_TIMEOUT,
        )
        resp.raise_for_status()

    async def aclose(self) -> None:
        """Close the shared client, if any."""
        if self._client is not None:
            await self._client.aclose()


def create_notification_sink() -> ResendNotificationSink:
    """Build the production sink from settings."""
    return ResendNotificationSink(
        api_key=settings.resend_api_key.get_secret_value(),
        sender=settings.email_from,
        client=httpx.AsyncClient(),
    )
