"""Repository for MagicLink operations.

Single-use login tokens with a fixed expiry. Redemption is a conditional
update so that two concurrent verifications of the same token cannot
both succeed.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from keystone.models.magic_link import MagicLink


class MagicLinkRepository:
    """Stateless repository for MagicLink table operations.

    All methods are static; there is no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token: str,
        expires_at: datetime,
    ) -> MagicLink:
        """Store a new magic link.

        Args:
            db: Async database session.
            user_id: Owning user.
            token: Plain hex token (also embedded in the emailed URL).
            expires_at: Expiry timestamp.

        Returns:
            Created MagicLink.
        """
        link = MagicLink(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
        )
        db.add(link)
        await db.flush()
        await db.refresh(link)
        return link

    @staticmethod
    async def get_redeemable(
        db: AsyncSession,
        *,
        token: str,
        now: datetime | None = None,
    ) -> MagicLink | None:
        """Look up an unused, unexpired link with its owning user loaded.

        Args:
            db: Async database session.
            token: Plain hex token.
            now: Reference time. Defaults to the current UTC time.

        Returns:
            MagicLink (with ``user`` populated) if redeemable, None otherwise.
        """
        now = now or datetime.now(UTC)
        stmt = (
            select(MagicLink)
            .options(joinedload(MagicLink.user))
            .where(
                MagicLink.token == token,
                MagicLink.expires_at > now,
                MagicLink.used_at.is_(None),
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_used(
        db: AsyncSession,
        *,
        link_id: int,
        now: datetime | None = None,
    ) -> bool:
        """Redeem a link, succeeding at most once.

        The unused/unexpired state is re-checked inside the UPDATE
        predicate, so a concurrent redemption that already committed
        leaves zero matching rows.

        Args:
            db: Async database session.
            link_id: MagicLink primary key.
            now: Redemption time. Defaults to the current UTC time.

        Returns:
            True if this call redeemed the link, False otherwise.
        """
        now = now or datetime.now(UTC)
        stmt = (
            update(MagicLink)
            .where(
                MagicLink.id == link_id,
                MagicLink.used_at.is_(None),
                MagicLink.expires_at > now,
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count == 1

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> list[MagicLink]:
        """List all links issued to a user, newest first.

        Args:
            db: Async database session.
            user_id: UUID of the user.

        Returns:
            List of MagicLink records (may be empty).
        """
        stmt = (
            select(MagicLink)
            .where(MagicLink.user_id == user_id)
            .order_by(MagicLink.created_at.desc(), MagicLink.id.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
