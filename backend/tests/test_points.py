import asyncio
import uuid
from datetime import date, timedelta
import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from conftest import make_challenge
from dailychallenge.jobs.awards import _award_submission
from dailychallenge.models.ledger import LedgerEntry, UserPoints
from dailychallenge.schemas.submission import SubmitRequest
from dailychallenge.services.catalog import schedule
from dailychallenge.services.intake import submit
from dailychallenge.services.points import (
    AwardPersistenceFailure, award, award_for_rank, award_for_submission, check_streaks,
    current_streak, history, leaderboard, ledger_total, reconcile_total, submission_ref, total_points,
)

PERFECT = {"correctness": 1, "speed": 0, "efficiency": 0}


async def _entries(session, user_id):
    return (await session.scalars(
        select(LedgerEntry).where(LedgerEntry.user_id == user_id).order_by(LedgerEntry.reason)
    )).all()


@pytest.mark.asyncio
async def test_award_is_idempotent(session):
    user = uuid.uuid4()
    first = await award(session, user, "submission:abc", 25, "participation")
    again = await award(session, user, "submission:abc", 25, "participation")
    assert first.created is True
    assert again.created is False
    assert again.entry.id == first.entry.id
    assert await total_points(session, user) == 25
    assert len(await _entries(session, user)) == 1

@pytest.mark.asyncio
async def test_same_source_different_reasons_both_count(session):
    user = uuid.uuid4()
    await award(session, user, "submission:abc", 25, "participation")
    await award(session, user, "submission:abc", 150, "rank_1")
    assert await total_points(session, user) == 175
    assert await ledger_total(session, user) == 175

@pytest.mark.asyncio
async def test_negative_points_rejected(session):
    with pytest.raises(ValueError):
        await award(session, uuid.uuid4(), "manual", -5, "adjust")

@pytest.mark.asyncio
async def test_submission_awards_participation_and_perfect_bonus(session, executor):
    ch = (await schedule(session, make_challenge(date(2030, 7, 1), scoring_criteria=PERFECT))).challenge
    user = uuid.uuid4()
    s = await submit(session, executor, user, ch.id, SubmitRequest(code="ok"))
    assert s.score_total == ch.max_points == 100

    results = await award_for_submission(session, s)
    assert [r.entry.reason for r in results] == ["participation", "perfect_score"]
    assert await total_points(session, user) == 75

    # re-running is a no-op
    results = await award_for_submission(session, s)
    assert all(not r.created for r in results)
    assert await total_points(session, user) == 75

@pytest.mark.asyncio
async def test_imperfect_submission_gets_participation_only(session, executor):
    ch = (await schedule(session, make_challenge(date(2030, 7, 1)))).challenge
    user = uuid.uuid4()
    s = await submit(session, executor, user, ch.id, SubmitRequest(code="wrong"))
    results = await award_for_submission(session, s)
    assert [r.entry.reason for r in results] == ["participation"]
    assert await total_points(session, user) == 25

@pytest.mark.asyncio
async def test_rank_points(session):
    user, sub = uuid.uuid4(), uuid.uuid4()
    res = await award_for_rank(session, user, sub, 2)
    assert res[0].entry.points == 100
    assert res[0].entry.source_ref == submission_ref(sub)
    assert await award_for_rank(session, user, sub, 4) == []

@pytest.mark.asyncio
async def test_failed_award_retried_later_lands_once(session, session_factory, executor, monkeypatch):
    ch = (await schedule(session, make_challenge(date(2030, 7, 2)))).challenge
    user = uuid.uuid4()
    s = await submit(session, executor, user, ch.id, SubmitRequest(code="ok"))

    async def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is down"))

    monkeypatch.setattr(session, "commit", broken_commit)
    with pytest.raises(AwardPersistenceFailure):
        await award_for_submission(session, s)
    monkeypatch.undo()
    await session.refresh(s)  # rollback expired it
    assert await ledger_total(session, user) == 0

    # deferred job and the submission path both retry
    await _award_submission(str(s.id), session_factory)
    await award_for_submission(session, s)

    entries = await _entries(session, user)
    assert [e.reason for e in entries] == ["participation"]
    assert await total_points(session, user) == 25

@pytest.mark.asyncio
async def test_streak_tier_awarded_once(session, executor):
    start = date(2030, 8, 1)
    user = uuid.uuid4()
    subs = []
    for i in range(8):
        ch = (await schedule(session, make_challenge(start + timedelta(days=i)))).challenge
        subs.append(await submit(session, executor, user, ch.id, SubmitRequest(code="wrong")))

    for s in subs[:6]:
        await award_for_submission(session, s)
    assert not [e for e in await _entries(session, user) if e.reason.startswith("streak")]

    await award_for_submission(session, subs[6])
    await award_for_submission(session, subs[7])
    streaks = [e for e in await _entries(session, user) if e.source_ref == "streak"]
    assert [(e.reason, e.points) for e in streaks] == [("streak_7", 50)]
    assert await current_streak(session, user) == 8
    assert await check_streaks(session, user) == []
    assert await total_points(session, user) == 8 * 25 + 50

@pytest.mark.asyncio
async def test_gap_breaks_streak(session, executor):
    start = date(2030, 9, 1)
    user = uuid.uuid4()
    for i in (0, 1, 2, 4, 5, 6, 7):
        ch = (await schedule(session, make_challenge(start + timedelta(days=i)))).challenge
        s = await submit(session, executor, user, ch.id, SubmitRequest(code="ok"))
        await award_for_submission(session, s)
    assert await current_streak(session, user) == 4
    assert await check_streaks(session, user) == []

@pytest.mark.asyncio
async def test_reconcile_rebuilds_cached_total(session):
    user = uuid.uuid4()
    await award(session, user, "submission:a", 25, "participation")
    await award(session, user, "submission:b", 25, "participation")
    row = await session.get(UserPoints, user)
    row.total = 999
    await session.commit()

    cached, actual, corrected = await reconcile_total(session, user)
    assert (cached, actual, corrected) == (999, 50, True)
    assert await total_points(session, user) == 50
    assert (await reconcile_total(session, user))[2] is False

@pytest.mark.asyncio
async def test_history_pages(session):
    user = uuid.uuid4()
    for i in range(5):
        await award(session, user, f"submission:{i}", 25, "participation")
    count, page = await history(session, user, limit=2, offset=0)
    assert count == 5 and len(page) == 2
    count, page = await history(session, user, limit=2, offset=4)
    assert len(page) == 1

@pytest.mark.asyncio
async def test_concurrent_awards_land_once(session, session_factory):
    user = uuid.uuid4()

    async def attempt():
        async with session_factory() as s:
            return await award(s, user, "submission:race", 25, "participation")

    results = await asyncio.gather(*(attempt() for _ in range(5)))
    assert sum(1 for r in results if r.created) == 1
    assert len({r.entry.id for r in results}) == 1
    assert await total_points(session, user) == 25
    assert len(await _entries(session, user)) == 1

@pytest.mark.asyncio
async def test_points_leaderboard_order(session):
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    await award(session, a, "submission:1", 25, "participation")
    await award(session, b, "submission:2", 175, "rank_1")
    await award(session, c, "submission:3", 100, "rank_2")
    rows = await leaderboard(session, limit=2)
    assert rows == [(1, b, 175), (2, c, 100)]
