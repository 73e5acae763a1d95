"""SQLAlchemy ORM models for Keystone Auth.

All models are exported from this module for convenient imports:
    from keystone.models import User, Account, MagicLink, ...

Models are organized by table:
- user.py: User, Role (Tier 0)
- account.py: Account (Tier 1 - OAuth links)
- magic_link.py: MagicLink (Tier 1 - passwordless login)
- waitlist_entry.py: WaitlistEntry (Tier 0, standalone)
"""

from keystone.models.account import Account
from keystone.models.base import Base, TimestampMixin
from keystone.models.magic_link import MagicLink
from keystone.models.user import Role, User
from keystone.models.waitlist_entry import WaitlistEntry

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Tier 0
    "User",
    "Role",
    "WaitlistEntry",
    # Tier 1
    "Account",
    "MagicLink",
]
