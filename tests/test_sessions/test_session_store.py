"""
Tests for the in-memory session store: expiry, single-use consumption and
concurrent validation.
"""

import asyncio
from datetime import timedelta

import pytest

from x402_vara.engine.exceptions import SessionNotFoundError
from x402_vara.sessions import InMemorySessionStore, SessionKind


@pytest.mark.asyncio
async def test_create_sets_expiry_from_ttl(session_store, clock):
    session = await session_store.create("time-bounded", ttl=3600, payload={"payer": "kGpayer"})

    assert session.kind == SessionKind.TIME_BOUNDED
    assert session.created_at == clock.now
    assert session.expires_at == clock.now + timedelta(hours=1)
    assert session.payload == {"payer": "kGpayer"}


@pytest.mark.asyncio
async def test_ids_are_unique(session_store):
    ids = {(await session_store.create("single-use", ttl=60)).id for _ in range(50)}
    assert len(ids) == 50


@pytest.mark.asyncio
@pytest.mark.parametrize("ttl", [0, -5, timedelta(0)])
async def test_non_positive_ttl_is_rejected(session_store, ttl):
    with pytest.raises(ValueError):
        await session_store.create("time-bounded", ttl=ttl)


@pytest.mark.asyncio
async def test_unknown_kind_is_rejected(session_store):
    with pytest.raises(ValueError):
        await session_store.create("forever", ttl=60)


@pytest.mark.asyncio
async def test_time_bounded_is_reusable_until_expiry(session_store, clock):
    session = await session_store.create("time-bounded", ttl=60)

    for _ in range(3):
        assert (await session_store.validate(session.id)).valid

    clock.advance(60)
    assert (await session_store.validate(session.id)).valid

    clock.advance(1)
    validation = await session_store.validate(session.id)
    assert not validation.valid
    assert validation.error == "Expired"


@pytest.mark.asyncio
async def test_single_use_is_consumed_once(session_store):
    session = await session_store.create("single-use", ttl=300)

    first = await session_store.validate(session.id)
    second = await session_store.validate(session.id)

    assert first.valid
    assert first.session.used is True
    assert not second.valid
    assert second.error == "AlreadyUsed"


@pytest.mark.asyncio
async def test_expired_single_use_is_not_consumed(session_store, clock):
    session = await session_store.create("single-use", ttl=10)
    clock.advance(11)

    validation = await session_store.validate(session.id)

    assert validation.error == "Expired"
    assert (await session_store.get(session.id)).used is False


@pytest.mark.asyncio
async def test_unknown_session(session_store):
    validation = await session_store.validate("no-such-session")
    assert not validation.valid
    assert validation.error == "NotFound"
    assert validation.session is None

    with pytest.raises(SessionNotFoundError):
        await session_store.get("no-such-session")


@pytest.mark.asyncio
async def test_get_does_not_consume(session_store):
    session = await session_store.create("single-use", ttl=60)
    await session_store.get(session.id)
    assert (await session_store.validate(session.id)).valid


@pytest.mark.asyncio
async def test_returned_sessions_are_copies(session_store):
    session = await session_store.create("single-use", ttl=60)
    session.used = True
    assert (await session_store.validate(session.id)).valid


@pytest.mark.asyncio
async def test_concurrent_single_use_validation_admits_one(session_store):
    session = await session_store.create("single-use", ttl=60)

    results = await asyncio.gather(*(session_store.validate(session.id) for _ in range(20)))

    assert sum(1 for r in results if r.valid) == 1
    assert {r.error for r in results if not r.valid} == {"AlreadyUsed"}


@pytest.mark.asyncio
async def test_list_active_skips_expired_and_consumed(session_store, clock):
    live = await session_store.create("time-bounded", ttl=3600)
    short = await session_store.create("time-bounded", ttl=5)
    used = await session_store.create("single-use", ttl=3600)
    await session_store.validate(used.id)
    clock.advance(10)

    active = await session_store.list_active()

    assert [s.id for s in active] == [live.id]
    assert len(session_store) == 3
    assert short.id not in {s.id for s in active}


@pytest.mark.asyncio
async def test_view_reports_remaining_time(session_store, clock):
    session = await session_store.create("time-bounded", ttl=120)
    clock.advance(20)

    view = (await session_store.validate(session.id)).session.to_dict()

    assert view["remainingTime"] == 100_000
    assert view["kind"] == "time-bounded"
    assert "used" not in view
    assert "expiresAt" in view


def test_default_clock_is_utc():
    store = InMemorySessionStore()
    assert store._clock().tzinfo is not None
