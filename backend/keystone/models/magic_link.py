"""Magic link model - single-use passwordless login tokens.

A link is redeemable iff ``now < expires_at`` and ``used_at IS NULL``.
Redemption sets ``used_at`` once; after that, or once the window has
passed, the link is dead. Rows are never deleted by the auth core.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from keystone.models.base import Base

if TYPE_CHECKING:
    from keystone.models.user import User


class MagicLink(Base):
    """Emailed login token.

    Attributes:
        id: Integer primary key.
        user_id: FK to the owning user.
        token: 64 hex characters (32 random bytes). Unique.
        created_at: Issuance timestamp.
        expires_at: Issuance + 15 minutes.
        used_at: Redemption timestamp. NULL while unused.
    """

    __tablename__ = "magic_links"

    id: Mapped[int] = mapped_column(
        Integer(),
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="magic_links")
