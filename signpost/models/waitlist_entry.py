"""
Waitlist entry model
"""
from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from signpost.database import Base


class WaitlistEntry(Base):
    """One row per distinct normalised email, never updated after insert"""
    __tablename__ = "waitlist"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(254), unique=True, index=True)
    domain: Mapped[str] = mapped_column(String(253), index=True)
    source: Mapped[str] = mapped_column(String(64), nullable=True)
    # epoch milliseconds, server clock
    joined_at: Mapped[int] = mapped_column(BigInteger, index=True)

    def __repr__(self) -> str:
        return f"<WaitlistEntry {self.id} @{self.domain}>"
