"""Password credential verification.

Exact email lookup plus a bcrypt comparison. A dummy hash is compared
when the user is missing or has no password, so response time does not
reveal whether the address is registered.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from keystone.core.auth import DUMMY_HASH, check_password
from keystone.models.user import User
from keystone.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class CredentialVerifier:
    """Checks an email/password pair against stored credentials.

    Read-only: never creates or modifies users.

    Args:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def validate_credentials(self, email: str, password: str) -> User | None:
        """Return the user if the password matches, None otherwise.

        Never raises for a bad credential. The reason for a failure is
        logged but not returned.

        Args:
            email: Email address as typed (matched exactly).
            password: Plain-text password.

        Returns:
            The matching User, or None.
        """
        user = await UserRepository.get_by_email(self._db, email)

        if user is None or user.password_hash is None:
            # Burn the same bcrypt time as a real comparison
            check_password(password, DUMMY_HASH)
            reason = "unknown_email" if user is None else "no_password"
            logger.info("Credential check failed", extra={"reason": reason})
            return None

        if not check_password(password, user.password_hash):
            logger.info(
                "Credential check failed",
                extra={"reason": "password_mismatch", "user_id": str(user.id)},
            )
            return None

        return user
