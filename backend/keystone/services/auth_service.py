"""Authentication facade.

Single entry point used by the auth endpoints. It composes the credential
verifier, the token issuer, the magic link manager and the OAuth identity
resolver, and it owns the translation of internal failures into the
uniform external errors:

- bad password / unknown email → 401 "Invalid credentials."
- unknown / expired / used / mismatched magic link → 401 "Invalid or
  expired magic link."
- bad or stale bearer token → 401 "Authentication required"
- provider profile without email → opaque 500, logged as misconfiguration
"""

import logging
import uuid
from collections.abc import Collection, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.core.account_linking import resolve_oauth_identity
from keystone.core.auth import hash_password
from keystone.core.email import EmailSender
from keystone.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    UnauthorizedError,
)
from keystone.core.oauth_profiles import ProviderProfile, ProviderProfileError
from keystone.core.tokens import TokenIssuer
from keystone.models.user import Role, User
from keystone.repositories.user_repository import UserRepository
from keystone.services.credential_verifier import CredentialVerifier
from keystone.services.magic_link_service import (
    DEFAULT_MAGIC_LINK_TTL_MINUTES,
    MagicLinkManager,
    MagicLinkRejected,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials."
INVALID_MAGIC_LINK_MESSAGE = "Invalid or expired magic link."
EMAIL_EXISTS_MESSAGE = "User with this email already exists."


class _CredentialsRejected(Exception):
    """Email/password pair did not verify."""


class _SessionRejected(Exception):
    """Bearer token did not resolve to a live user."""


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful sign-in.

    Attributes:
        access_token: Signed bearer token.
        expires_at: Token expiry (UTC).
        expires_in: Token lifetime in seconds.
        user: The signed-in user.
    """

    access_token: str
    expires_at: datetime
    expires_in: int
    user: User


@contextmanager
def _auth_boundary(operation: str) -> Iterator[None]:
    """Collapse internal failure variants into the uniform external errors."""
    try:
        yield
    except _CredentialsRejected as exc:
        raise UnauthorizedError(INVALID_CREDENTIALS_MESSAGE) from exc
    except MagicLinkRejected as exc:
        logger.info(
            "Magic link verification rejected",
            extra={"operation": operation, "reason": exc.reason},
        )
        raise UnauthorizedError(INVALID_MAGIC_LINK_MESSAGE) from exc
    except (jwt.InvalidTokenError, _SessionRejected) as exc:
        logger.info(
            "Bearer token rejected",
            extra={"operation": operation, "reason": type(exc).__name__},
        )
        raise UnauthorizedError() from exc
    except ProviderProfileError as exc:
        logger.error(
            "OAuth provider returned an unusable profile; check provider scopes",
            extra={"operation": operation, "detail": str(exc)},
        )
        raise InternalError() from exc


class AuthService:
    """Authentication facade over one request's database session.

    Args:
        db: Async database session.
        token_issuer: Configured bearer token issuer.
        email_sender: Outbound email collaborator (magic links only).
        magic_link_ttl_minutes: Magic link lifetime.
    """

    def __init__(
        self,
        db: AsyncSession,
        token_issuer: TokenIssuer,
        email_sender: EmailSender | None = None,
        *,
        magic_link_ttl_minutes: int = DEFAULT_MAGIC_LINK_TTL_MINUTES,
    ) -> None:
        self._db = db
        self._tokens = token_issuer
        self._email_sender = email_sender
        self._magic_link_ttl_minutes = magic_link_ttl_minutes

    def _issue(self, user: User) -> AuthResult:
        issued = self._tokens.issue(user)
        return AuthResult(
            access_token=issued.token,
            expires_at=issued.expires_at,
            expires_in=issued.expires_in,
            user=user,
        )

    def _magic_links(self) -> MagicLinkManager:
        if self._email_sender is None:
            msg = "AuthService was built without an email sender"
            raise RuntimeError(msg)
        return MagicLinkManager(
            self._db,
            self._email_sender,
            ttl_minutes=self._magic_link_ttl_minutes,
        )

    # =========================================================================
    # Password credentials
    # =========================================================================

    async def sign_up(self, email: str, password: str, name: str) -> AuthResult:
        """Register a password user and sign them in.

        Password length is validated at the request boundary.

        Raises:
            ConflictError: If the email is already registered, including
                when a concurrent signup wins the race.
        """
        existing = await UserRepository.get_by_email(self._db, email)
        if existing is not None:
            raise ConflictError(
                code="EMAIL_ALREADY_EXISTS", message=EMAIL_EXISTS_MESSAGE
            )

        try:
            user = await UserRepository.create(
                self._db,
                email=email,
                name=name,
                password_hash=hash_password(password),
                role=Role.USER,
            )
        except IntegrityError as exc:
            raise ConflictError(
                code="EMAIL_ALREADY_EXISTS", message=EMAIL_EXISTS_MESSAGE
            ) from exc

        logger.info("User signed up", extra={"user_id": str(user.id)})
        return self._issue(user)

    async def log_in(self, email: str, password: str) -> AuthResult:
        """Sign in with email and password.

        Raises:
            UnauthorizedError: "Invalid credentials." for every failure.
        """
        with _auth_boundary("log_in"):
            user = await CredentialVerifier(self._db).validate_credentials(
                email, password
            )
            if user is None:
                raise _CredentialsRejected
        return self._issue(user)

    # =========================================================================
    # Magic links
    # =========================================================================

    async def request_magic_link(self, email: str) -> str:
        """Issue a magic link. Always returns the same message."""
        return await self._magic_links().request_link(email)

    async def verify_magic_link(self, email: str, token: str) -> AuthResult:
        """Redeem a magic link and sign its owner in.

        Raises:
            UnauthorizedError: "Invalid or expired magic link." for every
                failure.
        """
        with _auth_boundary("verify_magic_link"):
            user = await self._magic_links().verify_link(email, token)
        return self._issue(user)

    # =========================================================================
    # OAuth
    # =========================================================================

    async def complete_oauth(
        self, provider: str, profile: ProviderProfile
    ) -> AuthResult:
        """Resolve a provider identity to a user and sign them in.

        Raises:
            ConflictError: If a concurrent request created the identity first.
            InternalError: If the provider withheld the email address.
        """
        with _auth_boundary("complete_oauth"):
            user = await resolve_oauth_identity(self._db, provider, profile)
        return self._issue(user)

    # =========================================================================
    # Sessions and roles
    # =========================================================================

    async def get_profile(self, user_id: uuid.UUID) -> User:
        """Re-read a user from storage.

        Raises:
            UnauthorizedError: If the user no longer exists.
        """
        with _auth_boundary("get_profile"):
            user = await UserRepository.get_by_id(self._db, user_id)
            if user is None:
                raise _SessionRejected
        return user

    async def authenticate(self, token: str) -> User:
        """Resolve a bearer token to a fresh user record.

        Raises:
            UnauthorizedError: If the token is invalid or expired, or its
                user no longer exists.
        """
        with _auth_boundary("authenticate"):
            claims = self._tokens.decode(token)
            try:
                user_id = uuid.UUID(claims.user_id)
            except ValueError as exc:
                raise _SessionRejected from exc
            user = await UserRepository.get_by_id(self._db, user_id)
            if user is None:
                raise _SessionRejected
        return user

    @staticmethod
    def require_role(user: User, allowed: Collection[Role]) -> User:
        """Check that a user's role is in the allowed set.

        Returns:
            The same user, for chaining.

        Raises:
            ForbiddenError: If the role is not allowed.
        """
        if user.role not in allowed:
            logger.info(
                "Role check denied",
                extra={"user_id": str(user.id), "role": user.role.value},
            )
            raise ForbiddenError()
        return user
