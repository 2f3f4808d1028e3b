"""
Rate limit bucket model
"""
import uuid
from sqlalchemy import BigInteger, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from signpost.database import Base


class RateLimitBucket(Base):
    """
    Sliding-window bucket, one row per key ("global" or "domain:<domain>").

    ``timestamps`` holds the epoch-ms times of admitted attempts; entries that
    fall out of the window are pruned whenever the row is written.
    """
    __tablename__ = "rate_limits"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    key: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    timestamps: Mapped[list[int]] = mapped_column(JSON, default=list)
    created_at: Mapped[int] = mapped_column(BigInteger)
    updated_at: Mapped[int] = mapped_column(BigInteger)
