"""Magic link issuance and redemption.

Lifecycle per link: CREATED, then either REDEEMED (verified inside the
window) or EXPIRED (window elapsed). Both end states are terminal.

Requesting a link always yields MAGIC_LINK_SENT_MESSAGE. Whether the
address was new, already registered, or the email relay failed is only
visible in the server logs.
"""

import logging
import re
import secrets
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.core.email import EmailSender
from keystone.models.user import Role, User
from keystone.repositories.magic_link_repository import MagicLinkRepository
from keystone.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

MAGIC_LINK_SENT_MESSAGE = (
    "Magic link sent. If your email is registered, "
    "you will receive a link to log in."
)

# 32 random bytes, hex-encoded
_TOKEN_BYTES = 32
_TOKEN_PATTERN = re.compile(r"[0-9a-f]{64}")

DEFAULT_MAGIC_LINK_TTL_MINUTES = 15


class MagicLinkRejected(Exception):
    """A magic link could not be redeemed.

    ``reason`` is for logs only. Callers must present every reason as the
    same error.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Magic link rejected: {reason}")


def generate_magic_link_token() -> str:
    """Return a fresh 64-character hex token."""
    return secrets.token_hex(_TOKEN_BYTES)


class MagicLinkManager:
    """Issues and redeems single-use email login links.

    Args:
        db: Async database session.
        email_sender: Outbound email collaborator.
        ttl_minutes: Link lifetime.
    """

    def __init__(
        self,
        db: AsyncSession,
        email_sender: EmailSender,
        *,
        ttl_minutes: int = DEFAULT_MAGIC_LINK_TTL_MINUTES,
    ) -> None:
        self._db = db
        self._email_sender = email_sender
        self._ttl = timedelta(minutes=ttl_minutes)

    async def request_link(self, email: str) -> str:
        """Issue a link for an address, creating the user if needed.

        The link is committed before the email is sent. Storage failures
        and any email sending failure are logged and absorbed.

        Args:
            email: Address to send the link to.

        Returns:
            MAGIC_LINK_SENT_MESSAGE, always.
        """
        token = generate_magic_link_token()
        try:
            # Savepoint keeps the request transaction usable after a failed
            # insert (e.g. a concurrent signup with the same address)
            async with self._db.begin_nested():
                user = await self._get_or_create_user(email)
                await MagicLinkRepository.create(
                    self._db,
                    user_id=user.id,
                    token=token,
                    expires_at=datetime.now(UTC) + self._ttl,
                )
            # Link must be durable before the email points at it
            await self._db.commit()
        except SQLAlchemyError:
            logger.warning("Magic link could not be issued", exc_info=True)
            return MAGIC_LINK_SENT_MESSAGE

        try:
            await self._email_sender.send_magic_link_email(
                to_email=email,
                token=token,
                ttl_minutes=int(self._ttl.total_seconds() // 60),
            )
        except Exception:
            logger.warning(
                "Failed to send magic link email",
                extra={"user_id": str(user.id)},
                exc_info=True,
            )

        return MAGIC_LINK_SENT_MESSAGE

    async def _get_or_create_user(self, email: str) -> User:
        user = await UserRepository.get_by_email(self._db, email)
        if user is not None:
            return user
        user = await UserRepository.create(self._db, email=email, role=Role.USER)
        logger.info(
            "Created user from magic link request",
            extra={"user_id": str(user.id)},
        )
        return user

    async def verify_link(self, email: str, token: str) -> User:
        """Redeem a link and return its owner.

        The redemption itself is a conditional update, so of two
        concurrent calls with the same token at most one succeeds.

        Args:
            email: Address the link was sent to (must match exactly).
            token: Token from the link.

        Returns:
            The user who owns the link.

        Raises:
            MagicLinkRejected: If the token is malformed, unknown, expired,
                already used, issued to another address, or lost a race.
        """
        if not _TOKEN_PATTERN.fullmatch(token):
            raise MagicLinkRejected("malformed")

        now = datetime.now(UTC)
        link = await MagicLinkRepository.get_redeemable(
            self._db, token=token, now=now
        )
        if link is None:
            raise MagicLinkRejected("not_found_expired_or_used")
        if link.user.email != email:
            raise MagicLinkRejected("email_mismatch")

        redeemed = await MagicLinkRepository.mark_used(
            self._db, link_id=link.id, now=now
        )
        if not redeemed:
            raise MagicLinkRejected("already_redeemed")

        logger.info("Magic link redeemed", extra={"user_id": str(link.user.id)})
        return link.user
