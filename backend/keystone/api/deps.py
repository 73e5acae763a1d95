"""Shared dependencies for API endpoints.

Builds the configured collaborators (token issuer, email sender) once
per process from settings and hands them to a per-request AuthService.
Bearer tokens are read from the Authorization header, then the session
cookie.
"""

from collections.abc import Awaitable, Callable
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.core.auth import extract_bearer_token
from keystone.core.config import settings
from keystone.core.database import get_db
from keystone.core.email import EmailSender
from keystone.core.errors import UnauthorizedError
from keystone.core.tokens import TokenConfig, TokenIssuer
from keystone.models.user import Role, User
from keystone.services.auth_service import AuthService

DbSession = Annotated[AsyncSession, Depends(get_db)]


@lru_cache(maxsize=1)
def get_token_issuer() -> TokenIssuer:
    """Process-wide token issuer built from settings.

    Raises:
        TokenIssuerConfigError: If JWT_SECRET is empty.
    """
    return TokenIssuer(TokenConfig.from_settings(settings))


@lru_cache(maxsize=1)
def get_email_sender() -> EmailSender:
    """Process-wide email sender built from settings."""
    return EmailSender.from_settings(settings)


async def get_auth_service(
    db: DbSession,
    token_issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    email_sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> AuthService:
    """AuthService bound to this request's session."""
    return AuthService(
        db,
        token_issuer,
        email_sender,
        magic_link_ttl_minutes=settings.magic_link_ttl_minutes,
    )


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


async def get_current_user(request: Request, auth: AuthServiceDep) -> User:
    """Resolve the bearer token on the request to a fresh User.

    Args:
        request: HTTP request (injected by FastAPI).
        auth: Auth service (injected).

    Returns:
        The authenticated user, re-read from storage.

    Raises:
        UnauthorizedError: If no token is present, the token is invalid
            or expired, or the user no longer exists.
    """
    token = extract_bearer_token(request)
    if not token:
        raise UnauthorizedError()
    return await auth.authenticate(token)


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: Role) -> Callable[[User], Awaitable[User]]:
    """Build a dependency that admits only users holding one of ``roles``.

    Usage:
        AdminUser = Annotated[User, Depends(require_roles(Role.ADMIN))]

    Raises:
        UnauthorizedError: If the request is not authenticated.
        ForbiddenError: If the user's role is not in ``roles``.
    """
    allowed = frozenset(roles)

    async def _check_role(user: CurrentUser) -> User:
        return AuthService.require_role(user, allowed)

    return _check_role


AdminUser = Annotated[User, Depends(require_roles(Role.ADMIN))]
