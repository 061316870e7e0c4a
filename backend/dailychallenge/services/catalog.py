from __future__ import annotations
from datetime import date, datetime, timedelta, timezone as dt_tz
from typing import NamedTuple
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dailychallenge.config import settings
from dailychallenge.models.challenge import Challenge
from dailychallenge.schemas.challenge import ChallengeCreate, DateAvailability, WeeklySchedule

log = structlog.get_logger()

# Extra attempts when a concurrent writer grabs the date we picked
MAX_INSERT_RETRIES = 5


class ChallengeNotFound(Exception):
    pass


class ScheduleResult(NamedTuple):
    challenge: Challenge
    requested_date: date
    scheduled_date: date
    conflict: bool  # True => no free date in horizon, `challenge` is the existing occupant


def utc_today() -> date:
    return datetime.now(dt_tz.utc).date()


async def get_challenge(session: AsyncSession, challenge_id: UUID) -> Challenge:
    ch = await session.get(Challenge, challenge_id)
    if not ch:
        raise ChallengeNotFound(str(challenge_id))
    return ch


async def lookup(session: AsyncSession, on: date) -> Challenge | None:
    return await session.scalar(select(Challenge).where(Challenge.date == on))


async def today_challenge(session: AsyncSession) -> Challenge | None:
    return await session.scalar(
        select(Challenge).where(Challenge.date == utc_today(), Challenge.is_active.is_(True))
    )


async def _occupied_dates(session: AsyncSession, start: date, end_exclusive: date) -> set[date]:
    rows = await session.scalars(
        select(Challenge.date).where(Challenge.date >= start, Challenge.date < end_exclusive)
    )
    return set(rows.all())


def _first_free(occupied: set[date], start: date, horizon_days: int) -> date | None:
    for offset in range(horizon_days + 1):
        d = start + timedelta(days=offset)
        if d not in occupied:
            return d
    return None


def _new_challenge(data: ChallengeCreate, on: date) -> Challenge:
    return Challenge(
        date=on,
        title=data.title,
        description=data.description,
        difficulty=data.difficulty,
        category=data.category,
        time_limit_minutes=data.time_limit_minutes,
        max_points=data.max_points,
        scoring_criteria=data.scoring_criteria.model_dump(mode="json", exclude_none=True),
        test_cases=[tc.model_dump(mode="json") for tc in data.test_cases],
        examples=[ex.model_dump(mode="json") for ex in data.examples],
        constraints=list(data.constraints),
        hint=data.hint,
        prizes=data.prizes.model_dump(mode="json", exclude_none=True),
        winners=[],
        is_active=data.is_active,
    )


async def schedule(
    session: AsyncSession,
    data: ChallengeCreate,
    requested_date: date | None = None,
    horizon_days: int | None = None,
) -> ScheduleResult:
    """
    Create `data` on `requested_date`, or on the first free date up to `horizon_days` later.
    If the whole horizon is booked, nothing is written and the occupant of `requested_date`
    comes back with conflict=True. Commits on success.
    """
    requested = requested_date or data.date
    horizon = settings.schedule_horizon_days if horizon_days is None else horizon_days

    for _ in range(MAX_INSERT_RETRIES):
        occupied = await _occupied_dates(session, requested, requested + timedelta(days=horizon + 1))
        free = _first_free(occupied, requested, horizon)
        if free is None:
            existing = await lookup(session, requested)
            log.warning("scheduling_conflict", requested_date=requested.isoformat(), horizon_days=horizon)
            return ScheduleResult(existing, requested, existing.date, True)

        ch = _new_challenge(data, free)
        session.add(ch)
        try:
            await session.commit()
        except IntegrityError:
            # someone else took `free` between our read and insert
            await session.rollback()
            continue
        await session.refresh(ch)
        if free != requested:
            log.info("challenge_rescheduled", requested_date=requested.isoformat(), scheduled_date=free.isoformat())
        log.info("challenge_scheduled", challenge_id=str(ch.id), date=free.isoformat())
        return ScheduleResult(ch, requested, free, False)

    raise RuntimeError(f"could not schedule challenge near {requested.isoformat()}")


async def availability(session: AsyncSession, start: date, days: int) -> list[DateAvailability]:
    taken = {
        c.date: c for c in (await session.scalars(
            select(Challenge).where(Challenge.date >= start, Challenge.date < start + timedelta(days=days))
        )).all()
    }
    out: list[DateAvailability] = []
    for i in range(days):
        d = start + timedelta(days=i)
        c = taken.get(d)
        out.append(DateAvailability(
            date=d,
            day_name=d.strftime("%A"),
            is_available=c is None,
            challenge_id=c.id if c else None,
            challenge_title=c.title if c else None,
        ))
    return out


async def weekly_schedule(session: AsyncSession, week_start: date) -> WeeklySchedule:
    days = await availability(session, week_start, 7)
    available = sum(1 for d in days if d.is_available)
    return WeeklySchedule(
        week_start=week_start,
        week_end=week_start + timedelta(days=6),
        reserved_count=7 - available,
        available_count=available,
        is_fully_booked=available == 0,
        needs_attention=available > 3,
        days=days,
    )
