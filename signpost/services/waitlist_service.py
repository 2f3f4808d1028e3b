"""
Waitlist service: admission pipeline and position lookup

Each pipeline step (rate-limit check, duplicate check, insert) runs in its own
session and transaction. No lock is held across steps; every step is either
idempotent or race-safe on its own.

Usage:
    service = WaitlistService(AsyncSessionLocal)
    outcome = await service.join("a@example.com", website=None, timestamp=now_ms())
    lookup = await service.check("a@example.com")
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from signpost.config import Settings, get_settings
from signpost.errors import InternalError, RateLimited, WaitlistError
from signpost.services.waitlist_store import WaitlistStore
from signpost.utils.email_validation import lookup_email, validate_submission
from signpost.utils.metrics import RATE_LIMIT_DENIALS, WAITLIST_CHECKS, WAITLIST_JOINS
from signpost.utils.rate_limiter import GLOBAL_KEY, RateLimitDecision, RateLimiter, domain_key
from signpost.utils.timezone import now_ms

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "You're on the list!"

# honeypot values a human-submitted form can carry; anything else is a bot
HONEYPOT_EMPTY = (None, "", 0, False)


class JoinStatus(str, enum.Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    HONEYPOT = "honeypot"


@dataclass(frozen=True)
class JoinOutcome:
    """Successful join; ``status`` is for logging and metrics only"""
    status: JoinStatus
    message: str = SUCCESS_MESSAGE


@dataclass(frozen=True)
class PositionLookup:
    found: bool
    position: Optional[int] = None
    total: Optional[int] = None
    joined_at: Optional[int] = None


NOT_FOUND = PositionLookup(found=False)


class WaitlistService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.clock = clock
        self.global_limiter = RateLimiter(
            limit=self.settings.waitlist_global_limit,
            window_ms=self.settings.waitlist_window_ms,
        )
        self.domain_limiter = RateLimiter(
            limit=self.settings.waitlist_domain_limit,
            window_ms=self.settings.waitlist_window_ms,
        )
        self.blocked_domains = self.settings.blocked_domains

    async def join(self, email: Any, website: Any = None, timestamp: Any = None) -> JoinOutcome:
        """
        Admit ``email`` to the waitlist.

        Honeypot hits, duplicates and fresh inserts all return the same
        message so callers cannot tell them apart.

        Raises:
            ExpiredRequest, InvalidEmail, DisposableDomain, RateLimited,
            InternalError
        """
        if website not in HONEYPOT_EMPTY:
            return self._joined(JoinStatus.HONEYPOT, None)

        now = self.clock()
        try:
            submission = validate_submission(
                email,
                timestamp,
                now,
                self.blocked_domains,
                max_skew_ms=self.settings.waitlist_max_skew_ms,
            )
            await self._enforce_rate_limits(submission.domain, now)
            inserted = await self._insert(submission.email, submission.domain, now)
        except WaitlistError as exc:
            WAITLIST_JOINS.labels(_outcome_label(exc)).inc()
            raise
        except SQLAlchemyError as exc:
            WAITLIST_JOINS.labels("internal_error").inc()
            logger.error(f"waitlist join failed: {exc}", exc_info=True)
            raise InternalError() from exc

        return self._joined(JoinStatus.INSERTED if inserted else JoinStatus.DUPLICATE, submission.domain)

    async def check(self, email: Any) -> PositionLookup:
        """
        Look up queue position for ``email``.

        Malformed input degrades to not-found.

        Raises:
            InternalError: the store could not be queried
        """
        normalized = lookup_email(email)
        if normalized is None:
            WAITLIST_CHECKS.labels("false").inc()
            return NOT_FOUND

        try:
            async with self.session_factory() as db, db.begin():
                store = WaitlistStore(db)
                entry = await store.get_by_email(normalized)
                if entry is None:
                    WAITLIST_CHECKS.labels("false").inc()
                    return NOT_FOUND
                position = await store.count_joined_through(entry.joined_at)
                total = await store.count_all()
        except SQLAlchemyError as exc:
            logger.error(f"waitlist check failed: {exc}", exc_info=True)
            raise InternalError() from exc

        WAITLIST_CHECKS.labels("true").inc()
        return PositionLookup(found=True, position=position, total=total, joined_at=entry.joined_at)

    async def _enforce_rate_limits(self, domain: str, now: int) -> None:
        # global first; a request already over the global cap never touches the domain bucket
        async with self.session_factory() as db:
            decision = await self.global_limiter.check_and_record(db, GLOBAL_KEY, now)
        if decision is RateLimitDecision.DENIED:
            RATE_LIMIT_DENIALS.labels("global").inc()
            raise RateLimited()

        async with self.session_factory() as db:
            decision = await self.domain_limiter.check_and_record(db, domain_key(domain), now)
        if decision is RateLimitDecision.DENIED:
            RATE_LIMIT_DENIALS.labels("domain").inc()
            raise RateLimited()

    async def _insert(self, email: str, domain: str, now: int) -> bool:
        async with self.session_factory() as db:
            if await WaitlistStore(db).get_by_email(email) is not None:
                return False

        async with self.session_factory() as db, db.begin():
            return await WaitlistStore(db).insert_if_absent(
                email, domain, joined_at=now, source=self.settings.waitlist_source
            )

    def _joined(self, status: JoinStatus, domain: Optional[str]) -> JoinOutcome:
        WAITLIST_JOINS.labels(status.value).inc()
        logger.info("waitlist join", extra={"outcome": status.value, "domain": domain})
        return JoinOutcome(status=status)


def _outcome_label(exc: WaitlistError) -> str:
    return exc.code.lower()
