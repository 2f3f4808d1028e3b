"""
Waitlist persistence
"""
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from signpost.database import insert_ignore
from signpost.models.waitlist_entry import WaitlistEntry


class WaitlistStore:
    """
    Indexed queries over the ``waitlist`` table.

    Usage:
        async with session_factory() as db:
            store = WaitlistStore(db)
            entry = await store.get_by_email("a@example.com")
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[WaitlistEntry]:
        result = await self.db.execute(
            select(WaitlistEntry).where(WaitlistEntry.email == email).limit(1)
        )
        return result.scalar_one_or_none()

    async def insert_if_absent(
        self,
        email: str,
        domain: str,
        joined_at: int,
        source: Optional[str] = None,
    ) -> bool:
        """
        Insert a new entry unless the email already exists.

        The uniqueness constraint decides, so a concurrent insert of the same
        email cannot produce a second row or an error.

        Returns:
            True if this call created the row, False if it already existed
        """
        stmt = insert_ignore(
            self.db,
            WaitlistEntry,
            {"email": email, "domain": domain, "source": source, "joined_at": joined_at},
            conflict_columns=["email"],
        ).returning(WaitlistEntry.id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def count_joined_through(self, joined_at: int) -> int:
        """Entries that joined at or before ``joined_at``"""
        result = await self.db.execute(
            select(func.count()).select_from(WaitlistEntry).where(WaitlistEntry.joined_at <= joined_at)
        )
        return int(result.scalar_one())

    async def count_all(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(WaitlistEntry))
        return int(result.scalar_one())
