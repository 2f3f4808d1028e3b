"""
Sliding-window rate limiter backed by the shared database

State lives in one ``rate_limits`` row per key, never in process memory, so
every instance of the service sees the same counts. Each call is a single
transaction:

1. ``INSERT ... ON CONFLICT DO NOTHING`` makes sure the bucket row exists.
2. ``SELECT ... FOR UPDATE`` re-reads it under a row lock (PostgreSQL). On
   SQLite the leading write statement already holds the database RESERVED
   lock, which serialises writers the same way.
3. Timestamps older than the window are dropped, the decision is made, and
   the row is written back before the transaction commits.

Denied attempts are not recorded.
"""
import enum
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from signpost.database import insert_ignore
from signpost.models.rate_limit import RateLimitBucket

logger = logging.getLogger(__name__)

GLOBAL_KEY = "global"


def domain_key(domain: str) -> str:
    return f"domain:{domain}"


class RateLimitDecision(str, enum.Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


class RateLimiter:
    def __init__(self, limit: int = 10, window_ms: int = 60_000):
        """
        Args:
            limit: admitted attempts allowed inside one window
            window_ms: length of the trailing window in milliseconds
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_ms < 1:
            raise ValueError("window_ms must be positive")
        self.limit = limit
        self.window_ms = window_ms

    async def check_and_record(self, db: AsyncSession, key: str, now: int) -> RateLimitDecision:
        """
        Atomically decide whether ``key`` may be admitted at ``now`` and, if so,
        record the attempt.

        ``db`` must not have a transaction in progress; this call owns the
        transaction boundary.
        """
        window_start = now - self.window_ms

        async with db.begin():
            await db.execute(
                insert_ignore(
                    db,
                    RateLimitBucket,
                    {"key": key, "timestamps": [], "created_at": now, "updated_at": now},
                    conflict_columns=["key"],
                )
            )
            result = await db.execute(
                select(RateLimitBucket)
                .where(RateLimitBucket.key == key)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            bucket = result.scalar_one()

            retained = [t for t in (bucket.timestamps or []) if t >= window_start]

            if len(retained) >= self.limit:
                bucket.timestamps = retained
                bucket.updated_at = now
                logger.info(
                    "rate limit hit",
                    extra={"rate_limit_key": key, "count": len(retained), "limit": self.limit},
                )
                return RateLimitDecision.DENIED

            retained.append(now)
            bucket.timestamps = retained
            bucket.updated_at = now

        return RateLimitDecision.ALLOWED
