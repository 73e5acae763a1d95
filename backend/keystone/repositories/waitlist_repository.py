"""Repository for WaitlistEntry operations."""

from sqlalchemy.ext.asyncio import AsyncSession

from keystone.models.waitlist_entry import WaitlistEntry


class WaitlistRepository:
    """Stateless repository for WaitlistEntry table operations."""

    @staticmethod
    async def create(db: AsyncSession, *, email: str) -> WaitlistEntry:
        """Add an email to the waitlist.

        Raises:
            sqlalchemy.exc.IntegrityError: If the email is already listed.
        """
        entry = WaitlistEntry(email=email)
        db.add(entry)
        await db.flush()
        await db.refresh(entry)
        return entry
