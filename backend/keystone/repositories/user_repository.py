"""Repository for User CRUD operations.

Provides database access for the users table. Email lookups are exact:
addresses are stored and compared as given.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.models.user import Role, User

# Fields that may be updated via UserRepository.update().
# Never add 'id', 'email', 'created_at', or 'updated_at'.
# 'role' is excluded to prevent mass-assignment privilege escalation;
# use set_role() for explicit role changes.
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "name",
        "avatar_url",
        "password_hash",
    }
)


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static; there is no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by exact email address.

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        name: str | None = None,
        password_hash: str | None = None,
        avatar_url: str | None = None,
        role: Role = Role.USER,
    ) -> User:
        """Create a new user.

        Args:
            db: Async database session.
            email: User email address.
            name: Display name.
            password_hash: bcrypt hash (None for OAuth and magic link users).
            avatar_url: Profile picture URL.
            role: Authorization role. Defaults to USER.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(
            email=email,
            name=name,
            password_hash=password_hash,
            avatar_url=avatar_url,
            role=role,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        **kwargs: str | None,
    ) -> User | None:
        """Update user fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            user_id: UUID of the user to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        user = await db.get(User, user_id)
        if user is None:
            return None

        for field, value in kwargs.items():
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def set_role(
        db: AsyncSession, user_id: uuid.UUID, *, role: Role
    ) -> User | None:
        """Set the role for a user.

        Separated from update() to prevent mass-assignment privilege
        escalation. Only call from explicit operational paths.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            role: New role.

        Returns:
            Updated User if found, None if user does not exist.
        """
        user = await db.get(User, user_id)
        if user is None:
            return None
        user.role = role
        await db.flush()
        await db.refresh(user)
        return user
