"""Account linking for OAuth sign-in.

Resolves a normalized provider profile to exactly one user.

Rules (first match wins):
1. provider+account_id already exists → returning user; refresh name and
   avatar when the provider sends different values
2. email matches an existing user → link a new account; fill name and
   avatar only where the user has none
3. no match → create user + account
Uniqueness violations from concurrent creation surface as ConflictError.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.core.errors import ConflictError
from keystone.core.oauth_profiles import ProviderProfile, ProviderProfileError
from keystone.models.user import Role, User
from keystone.repositories.account_repository import AccountRepository
from keystone.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

_FALLBACK_NAME = "User"


def derive_display_name(profile: ProviderProfile) -> str:
    """Best-effort display name: full name, else given + family, else "User"."""
    if profile.display_name:
        return profile.display_name
    joined = " ".join(
        part for part in (profile.given_name, profile.family_name) if part
    ).strip()
    return joined or _FALLBACK_NAME


async def _refresh_from_provider(
    db: AsyncSession, user: User, profile: ProviderProfile
) -> User:
    """Overwrite name/avatar with provider values that differ."""
    changes: dict[str, str] = {}
    name = derive_display_name(profile)
    if name != _FALLBACK_NAME and name != user.name:
        changes["name"] = name
    if profile.avatar_url and profile.avatar_url != user.avatar_url:
        changes["avatar_url"] = profile.avatar_url
    if not changes:
        return user
    updated = await UserRepository.update(db, user.id, **changes)
    return updated or user


async def _backfill_unset(
    db: AsyncSession, user: User, profile: ProviderProfile
) -> User:
    """Fill name/avatar only where the stored value is empty."""
    changes: dict[str, str] = {}
    if not user.name:
        changes["name"] = derive_display_name(profile)
    if not user.avatar_url and profile.avatar_url:
        changes["avatar_url"] = profile.avatar_url
    if not changes:
        return user
    updated = await UserRepository.update(db, user.id, **changes)
    return updated or user


async def resolve_oauth_identity(
    db: AsyncSession,
    provider: str,
    profile: ProviderProfile,
) -> User:
    """Find, link, or create the user behind a provider identity.

    Args:
        db: Async database session.
        provider: Provider name (e.g., "google", "github").
        profile: Normalized provider profile.

    Returns:
        The resolved User.

    Raises:
        ProviderProfileError: If the profile carries no email.
        ConflictError: If a concurrent request created the same email or
            provider account first.
    """
    if not profile.email:
        msg = f"{provider} profile has no email address"
        raise ProviderProfileError(msg)

    # Step 1: returning user
    existing_account = await AccountRepository.get_by_provider_and_account_id(
        db, provider, profile.provider_account_id
    )
    if existing_account:
        user = await UserRepository.get_by_id(db, existing_account.user_id)
        if user:
            logger.info(
                "Returning OAuth user",
                extra={"user_id": str(user.id), "provider": provider},
            )
            return await _refresh_from_provider(db, user, profile)

    try:
        # Step 2: link to the user that owns this email
        existing_user = await UserRepository.get_by_email(db, profile.email)
        if existing_user:
            await AccountRepository.create(
                db,
                user_id=existing_user.id,
                provider=provider,
                provider_account_id=profile.provider_account_id,
            )
            logger.info(
                "Linked OAuth account to existing user",
                extra={"user_id": str(existing_user.id), "provider": provider},
            )
            return await _backfill_unset(db, existing_user, profile)

        # Step 3: brand new user
        new_user = await UserRepository.create(
            db,
            email=profile.email,
            name=derive_display_name(profile),
            avatar_url=profile.avatar_url,
            role=Role.USER,
        )
        await AccountRepository.create(
            db,
            user_id=new_user.id,
            provider=provider,
            provider_account_id=profile.provider_account_id,
        )
    except IntegrityError as exc:
        logger.warning(
            "OAuth identity creation lost a uniqueness race",
            extra={"provider": provider},
        )
        raise ConflictError(
            code="ACCOUNT_CONFLICT",
            message="An account for this identity already exists.",
        ) from exc

    logger.info(
        "Created new OAuth user",
        extra={"user_id": str(new_user.id), "provider": provider},
    )
    return new_user
