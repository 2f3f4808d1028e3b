import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from signpost.config import Settings
from signpost.errors import DisposableDomain, ExpiredRequest, InternalError, InvalidEmail, RateLimited
from signpost.models import RateLimitBucket, WaitlistEntry
from signpost.services.waitlist_service import (
    SUCCESS_MESSAGE,
    JoinStatus,
    PositionLookup,
    WaitlistService,
)


async def entry_count(session_factory) -> int:
    async with session_factory() as db:
        return (await db.execute(select(func.count()).select_from(WaitlistEntry))).scalar_one()


async def bucket_keys(session_factory) -> set:
    async with session_factory() as db:
        return set((await db.execute(select(RateLimitBucket.key))).scalars().all())


@pytest.mark.anyio
async def test_join_inserts_normalized_entry(service, session_factory, clock):
    outcome = await service.join("  Ada@Example.com ", timestamp=clock())

    assert outcome.status is JoinStatus.INSERTED
    assert outcome.message == SUCCESS_MESSAGE

    async with session_factory() as db:
        entry = (await db.execute(select(WaitlistEntry))).scalar_one()
    assert entry.email == "ada@example.com"
    assert entry.domain == "example.com"
    assert entry.joined_at == clock.now
    assert entry.source == "signpost.cv"


@pytest.mark.anyio
async def test_repeat_join_is_idempotent(service, session_factory, clock):
    first = await service.join("ada@example.com", timestamp=clock())
    clock.advance(1_000)
    again = await service.join("ADA@example.com  ", timestamp=clock())

    assert first.status is JoinStatus.INSERTED
    assert again.status is JoinStatus.DUPLICATE
    assert first.message == again.message
    assert await entry_count(session_factory) == 1


@pytest.mark.anyio
async def test_honeypot_skips_everything(service, session_factory, clock):
    # invalid email and stale timestamp are ignored for bots
    outcome = await service.join("not-an-email", website="https://spam.example", timestamp=0)

    assert outcome.status is JoinStatus.HONEYPOT
    assert outcome.message == SUCCESS_MESSAGE
    assert await entry_count(session_factory) == 0
    assert await bucket_keys(session_factory) == set()


@pytest.mark.anyio
@pytest.mark.parametrize("website", [None, "", 0, False])
async def test_empty_honeypot_is_ignored(service, clock, website):
    outcome = await service.join("ada@example.com", website=website, timestamp=clock())
    assert outcome.status is JoinStatus.INSERTED


@pytest.mark.anyio
@pytest.mark.parametrize("website", [True, 1, "x", ["http://spam"], {}])
async def test_any_filled_honeypot_is_a_bot(service, session_factory, clock, website):
    outcome = await service.join("ada@example.com", website=website, timestamp=clock())

    assert outcome.status is JoinStatus.HONEYPOT
    assert await entry_count(session_factory) == 0


@pytest.mark.anyio
async def test_expired_request_rejected_regardless_of_email(service, session_factory, clock):
    with pytest.raises(ExpiredRequest):
        await service.join("ada@example.com", timestamp=clock() - 30_001)
    with pytest.raises(ExpiredRequest):
        await service.join("garbage", timestamp=clock() + 45_000)
    with pytest.raises(ExpiredRequest):
        await service.join("ada@example.com")

    assert await entry_count(session_factory) == 0
    assert await bucket_keys(session_factory) == set()


@pytest.mark.anyio
async def test_invalid_email_rejected(service, clock):
    with pytest.raises(InvalidEmail):
        await service.join("ada@localhost", timestamp=clock())


@pytest.mark.anyio
async def test_disposable_domain_rejected_before_rate_limiting(service, session_factory, clock):
    with pytest.raises(DisposableDomain):
        await service.join("user@mailinator.com", timestamp=clock())

    assert await bucket_keys(session_factory) == set()


@pytest.mark.anyio
async def test_global_limit(service, session_factory, clock):
    for i in range(10):
        outcome = await service.join(f"user{i}@domain{i}.com", timestamp=clock())
        assert outcome.status is JoinStatus.INSERTED
        clock.advance(10)

    with pytest.raises(RateLimited):
        await service.join("late@domain10.com", timestamp=clock())

    # global denial never reaches the domain bucket
    assert "domain:domain10.com" not in await bucket_keys(session_factory)
    assert await entry_count(session_factory) == 10

    clock.advance(60_000)
    outcome = await service.join("late@domain10.com", timestamp=clock())
    assert outcome.status is JoinStatus.INSERTED


@pytest.mark.anyio
async def test_domain_limit(service, session_factory, clock):
    for i in range(3):
        await service.join(f"user{i}@acme.io", timestamp=clock())

    with pytest.raises(RateLimited):
        await service.join("user3@acme.io", timestamp=clock())

    # other domains are unaffected
    outcome = await service.join("someone@other.io", timestamp=clock())
    assert outcome.status is JoinStatus.INSERTED
    assert await entry_count(session_factory) == 4


@pytest.mark.anyio
async def test_duplicates_consume_rate_limit(service, clock):
    for _ in range(3):
        await service.join("ada@example.com", timestamp=clock())

    with pytest.raises(RateLimited):
        await service.join("ada@example.com", timestamp=clock())


@pytest.mark.anyio
async def test_concurrent_joins_of_same_email(session_factory, clock):
    settings = Settings(_env_file=None, waitlist_global_limit=100, waitlist_domain_limit=100)
    service = WaitlistService(session_factory, settings=settings, clock=clock)

    outcomes = await asyncio.gather(
        *(service.join("race@example.com", timestamp=clock()) for _ in range(8))
    )

    assert all(o.message == SUCCESS_MESSAGE for o in outcomes)
    assert [o.status for o in outcomes].count(JoinStatus.INSERTED) == 1
    assert await entry_count(session_factory) == 1


@pytest.mark.anyio
async def test_concurrent_joins_respect_global_limit(session_factory, clock):
    settings = Settings(_env_file=None, waitlist_global_limit=4)
    service = WaitlistService(session_factory, settings=settings, clock=clock)

    results = await asyncio.gather(
        *(service.join(f"user{i}@site{i}.com", timestamp=clock()) for i in range(9)),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, RateLimited)) == 5
    assert sum(1 for r in results if not isinstance(r, Exception)) == 4
    assert await entry_count(session_factory) == 4


@pytest.mark.anyio
async def test_check_unknown_email(service):
    assert await service.check("nobody@example.com") == PositionLookup(found=False)


@pytest.mark.anyio
@pytest.mark.parametrize("email", [None, "", "bad", "a\x00@b.com", 12, "x" * 300 + "@a.com"])
async def test_check_malformed_email_is_not_found(service, email):
    assert (await service.check(email)).found is False


@pytest.mark.anyio
async def test_check_single_entry(service, clock):
    await service.join("user@x.com", timestamp=clock())

    lookup = await service.check("USER@x.com ")

    assert lookup == PositionLookup(found=True, position=1, total=1, joined_at=clock.now)


@pytest.mark.anyio
async def test_check_positions(service, clock):
    start = clock.now
    await service.join("a@test.com", timestamp=clock())
    clock.advance(100)
    await service.join("b@test.com", timestamp=clock())

    b = await service.check("b@test.com")
    a = await service.check("a@test.com")

    assert (b.position, b.total, b.joined_at) == (2, 2, start + 100)
    assert (a.position, a.total, a.joined_at) == (1, 2, start)


@pytest.mark.anyio
async def test_check_same_millisecond_shares_position(service, clock):
    await service.join("first@one.com", timestamp=clock())
    await service.join("second@two.com", timestamp=clock())

    assert (await service.check("first@one.com")).position == 2
    assert (await service.check("second@two.com")).position == 2


@pytest.fixture
async def broken_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nope.db'}")
    yield async_sessionmaker(bind=engine, class_=AsyncSession)
    await engine.dispose()


@pytest.mark.anyio
async def test_store_failure_on_join_is_internal_error(broken_factory, settings, clock):
    service = WaitlistService(broken_factory, settings=settings, clock=clock)

    with pytest.raises(InternalError) as exc:
        await service.join("ada@example.com", timestamp=clock())

    assert exc.value.message == "Something went wrong"


@pytest.mark.anyio
async def test_store_failure_on_check_is_internal_error(broken_factory, settings, clock):
    service = WaitlistService(broken_factory, settings=settings, clock=clock)

    with pytest.raises(InternalError):
        await service.check("ada@example.com")
