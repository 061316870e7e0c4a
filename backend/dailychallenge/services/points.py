from __future__ import annotations
from datetime import date, timedelta
from typing import NamedTuple
from uuid import UUID

import structlog
from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dailychallenge.db import dialect_name
from dailychallenge.models.challenge import Challenge
from dailychallenge.models.ledger import LedgerEntry, UserPoints
from dailychallenge.models.submission import Submission

log = structlog.get_logger()

# ---------- point tables ----------

RANK_POINTS = {1: 150, 2: 100, 3: 75}
PARTICIPATION_POINTS = 25
PERFECT_SCORE_BONUS = 50

# window length in days -> one-time bonus
STREAK_TIERS = {7: 50, 14: 150, 30: 500}
STREAK_SOURCE = "streak"

RANK_NOTES = {1: "First place in daily challenge", 2: "Second place in daily challenge", 3: "Third place in daily challenge"}


class AwardPersistenceFailure(Exception):
    pass


class AwardResult(NamedTuple):
    entry: LedgerEntry
    created: bool  # False => AlreadyAwarded, totals untouched


def submission_ref(submission_id: UUID) -> str:
    return f"submission:{submission_id}"


def _insert_for(session: AsyncSession):
    name = dialect_name(session)
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise AwardPersistenceFailure(f"unsupported dialect for insert-if-absent: {name}")


# ---------- award (insert-if-absent) ----------

async def award(
    session: AsyncSession,
    user_id: UUID,
    source_ref: str,
    points: int,
    reason: str,
    note: str | None = None,
) -> AwardResult:
    """
    Append one ledger entry keyed by (user_id, source_ref, reason), atomically.
    A second call with the same key returns the existing entry and leaves the total alone.
    Commits. Raises AwardPersistenceFailure on database errors.
    """
    if points < 0:
        raise ValueError("points must be >= 0")
    insert = _insert_for(session)
    try:
        new_id = await session.scalar(
            insert(LedgerEntry)
            .values(user_id=user_id, source_ref=source_ref, reason=reason, points=int(points), note=note)
            .on_conflict_do_nothing(index_elements=["user_id", "source_ref", "reason"])
            .returning(LedgerEntry.id)
        )
        if new_id is not None:
            await session.execute(
                insert(UserPoints)
                .values(user_id=user_id, total=int(points))
                .on_conflict_do_update(
                    index_elements=["user_id"],
                    set_={"total": UserPoints.total + int(points), "updated_at": func.now()},
                )
            )
        await session.commit()
        entry = await session.scalar(
            select(LedgerEntry).where(
                LedgerEntry.user_id == user_id,
                LedgerEntry.source_ref == source_ref,
                LedgerEntry.reason == reason,
            )
        )
    except SQLAlchemyError as e:
        await session.rollback()
        log.error("award_failed", user_id=str(user_id), source_ref=source_ref, reason=reason, error=str(e))
        raise AwardPersistenceFailure(str(e)) from e

    if new_id is None:
        log.info("award_already_granted", user_id=str(user_id), source_ref=source_ref, reason=reason)
        return AwardResult(entry, False)
    log.info("points_awarded", user_id=str(user_id), source_ref=source_ref, reason=reason, points=int(points))
    return AwardResult(entry, True)


# ---------- submission / rank awards ----------

async def award_for_submission(session: AsyncSession, submission: Submission) -> list[AwardResult]:
    """Participation + perfect-score bonus for a recorded submission, then the streak check."""
    ch = await session.get(Challenge, submission.challenge_id)
    ref = submission_ref(submission.id)
    results = [
        await award(session, submission.user_id, ref, PARTICIPATION_POINTS, "participation",
                    "Participation in daily challenge"),
    ]
    if ch is not None and submission.score_total == ch.max_points:
        results.append(await award(session, submission.user_id, ref, PERFECT_SCORE_BONUS, "perfect_score",
                                   "Perfect score bonus"))
    as_of = ch.date if ch is not None else None
    results.extend(await check_streaks(session, submission.user_id, as_of))
    return results


async def award_for_rank(session: AsyncSession, user_id: UUID, submission_id: UUID, rank: int) -> list[AwardResult]:
    points = RANK_POINTS.get(rank)
    if points is None:
        return []
    results = [await award(session, user_id, submission_ref(submission_id), points, f"rank_{rank}", RANK_NOTES[rank])]
    results.extend(await check_streaks(session, user_id))
    return results


# ---------- streaks ----------

async def active_days(session: AsyncSession, user_id: UUID, start: date, end: date) -> int:
    """Distinct challenge dates in [start, end] on which the user has a submission."""
    n = await session.scalar(
        select(func.count(func.distinct(Challenge.date)))
        .select_from(Submission)
        .join(Challenge, Challenge.id == Submission.challenge_id)
        .where(Submission.user_id == user_id, Challenge.date >= start, Challenge.date <= end)
    )
    return int(n or 0)


async def latest_activity_date(session: AsyncSession, user_id: UUID) -> date | None:
    return await session.scalar(
        select(func.max(Challenge.date))
        .select_from(Submission)
        .join(Challenge, Challenge.id == Submission.challenge_id)
        .where(Submission.user_id == user_id)
    )


async def current_streak(session: AsyncSession, user_id: UUID, as_of: date | None = None) -> int:
    """Consecutive active days ending at `as_of` (defaults to the latest active day)."""
    as_of = as_of or await latest_activity_date(session, user_id)
    if as_of is None:
        return 0
    days = set((await session.scalars(
        select(Challenge.date)
        .join(Submission, Submission.challenge_id == Challenge.id)
        .where(Submission.user_id == user_id, Challenge.date <= as_of)
    )).all())
    streak = 0
    d = as_of
    while d in days:
        streak += 1
        d -= timedelta(days=1)
    return streak


async def check_streaks(session: AsyncSession, user_id: UUID, as_of: date | None = None) -> list[AwardResult]:
    """
    For each tier N, a user active on all N days of the trailing window ending at `as_of`
    earns that tier's bonus once (source_ref="streak", reason="streak_N").
    """
    as_of = as_of or await latest_activity_date(session, user_id)
    if as_of is None:
        return []
    granted: list[AwardResult] = []
    for window, bonus in sorted(STREAK_TIERS.items()):
        # every calendar day of the window needs a submission; a day without a challenge breaks it
        count = await active_days(session, user_id, as_of - timedelta(days=window - 1), as_of)
        if count < window:
            continue
        res = await award(session, user_id, STREAK_SOURCE, bonus, f"streak_{window}", f"{window}-day daily challenge streak")
        if res.created:
            granted.append(res)
    return granted


# ---------- reads ----------

async def total_points(session: AsyncSession, user_id: UUID) -> int:
    cached = await session.scalar(select(UserPoints.total).where(UserPoints.user_id == user_id))
    return int(cached or 0)


async def ledger_total(session: AsyncSession, user_id: UUID) -> int:
    total = await session.scalar(
        select(func.coalesce(func.sum(LedgerEntry.points), 0)).where(LedgerEntry.user_id == user_id)
    )
    return int(total or 0)


async def reconcile_total(session: AsyncSession, user_id: UUID) -> tuple[int, int, bool]:
    """Rebuild the cached total from the ledger. Returns (cached_before, ledger_sum, corrected)."""
    cached = await total_points(session, user_id)
    actual = await ledger_total(session, user_id)
    if cached == actual:
        return cached, actual, False
    row = await session.get(UserPoints, user_id)
    if row is None:
        session.add(UserPoints(user_id=user_id, total=actual))
    else:
        row.total = actual
    await session.commit()
    log.warning("points_total_reconciled", user_id=str(user_id), cached=cached, ledger=actual)
    return cached, actual, True


async def history(session: AsyncSession, user_id: UUID, limit: int = 20, offset: int = 0) -> tuple[int, list[LedgerEntry]]:
    count = await session.scalar(
        select(func.count()).select_from(LedgerEntry).where(LedgerEntry.user_id == user_id)
    )
    entries = (await session.execute(
        select(LedgerEntry)
        .where(LedgerEntry.user_id == user_id)
        .order_by(LedgerEntry.awarded_at.desc(), LedgerEntry.id)
        .limit(limit)
        .offset(offset)
    )).scalars().all()
    return int(count or 0), list(entries)


async def leaderboard(session: AsyncSession, limit: int = 10) -> list[tuple[int, UUID, int]]:
    """Global standings by cached total: (rank, user_id, total), rank = position."""
    rows = (await session.execute(
        select(UserPoints.user_id, UserPoints.total)
        .order_by(UserPoints.total.desc(), UserPoints.user_id)
        .limit(limit)
    )).all()
    return [(idx + 1, user_id, int(total)) for idx, (user_id, total) in enumerate(rows)]
