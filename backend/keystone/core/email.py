"""Email sending via an HTTP relay (Resend-compatible API).

Plain-text messages only. The sender never swallows delivery errors on
its own; callers that must hide delivery failures (magic link requests)
catch send failures themselves.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import quote, urlencode

import httpx

if TYPE_CHECKING:
    from keystone.core.config import Settings

logger = logging.getLogger(__name__)

_EMAIL_TIMEOUT = 10.0


class EmailDeliveryError(Exception):
    """Raised when the relay rejects a message or cannot be reached."""


def build_magic_link_url(frontend_url: str, *, email: str, token: str) -> str:
    """Build the frontend verification URL embedded in magic link emails.

    Args:
        frontend_url: Frontend base URL (no trailing slash needed).
        email: Recipient address, echoed back on verification.
        token: Plain magic link token.

    Returns:
        ``{frontend_url}/auth/verify-magic-link?token=...&email=...``
    """
    params = urlencode({"token": token, "email": email}, quote_via=quote)
    return f"{frontend_url.rstrip('/')}/auth/verify-magic-link?{params}"


@dataclass(frozen=True)
class EmailSender:
    """Sends transactional email through the configured relay.

    Attributes:
        api_url: Relay endpoint accepting JSON POSTs.
        api_key: Bearer key for the relay.
        from_address: Envelope sender address.
        sender_name: Display name shown alongside the sender address.
        frontend_url: Base URL for links embedded in messages.
    """

    api_url: str
    api_key: str
    from_address: str
    sender_name: str
    frontend_url: str

    @classmethod
    def from_settings(cls, settings: "Settings") -> "EmailSender":
        """Build a sender from application settings."""
        return cls(
            api_url=settings.email_api_url,
            api_key=settings.email_api_key.get_secret_value(),
            from_address=settings.email_from,
            sender_name=settings.email_sender_name,
            frontend_url=settings.frontend_url,
        )

    async def send(self, *, to_email: str, subject: str, text: str) -> None:
        """POST a plain-text message to the relay.

        Args:
            to_email: Recipient address.
            subject: Subject line.
            text: Plain-text body.

        Raises:
            EmailDeliveryError: On transport failure or a non-2xx response.
        """
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": f"{self.sender_name} <{self.from_address}>",
                        "to": to_email,
                        "subject": subject,
                        "text": text,
                    },
                    timeout=_EMAIL_TIMEOUT,
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(str(exc)) from exc
        logger.debug("Email accepted by relay", extra={"subject": subject})

    async def send_magic_link_email(
        self, *, to_email: str, token: str, ttl_minutes: int
    ) -> None:
        """Send a magic link sign-in email.

        Args:
            to_email: Recipient address.
            token: Plain magic link token.
            ttl_minutes: Link lifetime, stated in the message body.

        Raises:
            EmailDeliveryError: If the relay call fails.
        """
        verify_url = build_magic_link_url(
            self.frontend_url, email=to_email, token=token
        )
        await self.send(
            to_email=to_email,
            subject=f"Your {self.sender_name} sign-in link",
            text=(
                f"Click this link to sign in:\n\n{verify_url}\n\n"
                f"This link expires in {ttl_minutes} minutes. "
                "If you didn't request this, you can safely ignore this email."
            ),
        )
