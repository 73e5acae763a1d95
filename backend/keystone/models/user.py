"""User model - authentication foundation.

A user is created on password signup, on a first magic link request, or
on a first OAuth login. The core never deletes users.
"""

import uuid
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum as SAEnum
from sqlalchemy import String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from keystone.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from keystone.models.account import Account
    from keystone.models.magic_link import MagicLink

_DEFAULT_UUID = text("gen_random_uuid()")
_CASCADE_ALL_DELETE_ORPHAN = "all, delete-orphan"


class Role(str, Enum):
    """Authorization role carried by every user and embedded in tokens."""

    USER = "USER"
    ADMIN = "ADMIN"


class User(Base, TimestampMixin):
    """User account for authentication.

    Attributes:
        id: UUID primary key.
        email: Unique email address, stored as given (case-sensitive).
        name: Display name (from signup or back-filled from a provider).
        avatar_url: Profile picture URL from an OAuth provider.
        password_hash: bcrypt hash. NULL for OAuth-only and magic-link-only users.
        role: USER or ADMIN. Defaults to USER.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    avatar_url: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    role: Mapped[Role] = mapped_column(
        SAEnum(
            Role,
            name="user_role",
            native_enum=False,
            create_constraint=True,
            length=20,
        ),
        nullable=False,
        server_default=Role.USER.value,
        default=Role.USER,
    )

    # Relationships
    accounts: Mapped[list["Account"]] = relationship(
        "Account",
        back_populates="user",
        cascade=_CASCADE_ALL_DELETE_ORPHAN,
    )
    magic_links: Mapped[list["MagicLink"]] = relationship(
        "MagicLink",
        back_populates="user",
        cascade=_CASCADE_ALL_DELETE_ORPHAN,
    )
