from __future__ import annotations
from datetime import date, timedelta
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from dailychallenge.db import get_session
from dailychallenge.auth_deps import require_admin
from dailychallenge.models.challenge import Challenge
from dailychallenge.schemas.challenge import (
    ChallengeCreate, ChallengePublic, ScheduleResponse, DateAvailability, WeeklySchedule,
    ScoringCriteria, Example, Prizes, Winner,
)
from dailychallenge.services.catalog import (
    ChallengeNotFound, get_challenge, lookup, today_challenge, schedule, availability, weekly_schedule, utc_today,
)

router = APIRouter(prefix="/challenges", tags=["challenges"])

def to_public(ch: Challenge) -> ChallengePublic:
    # test case bodies (expected outputs) stay server-side
    return ChallengePublic(
        id=ch.id, date=ch.date, title=ch.title, description=ch.description,
        difficulty=ch.difficulty, category=ch.category,
        time_limit_minutes=ch.time_limit_minutes, max_points=ch.max_points,
        scoring_criteria=ScoringCriteria.model_validate(ch.scoring_criteria or {}),
        examples=[Example.model_validate(e) for e in (ch.examples or [])],
        constraints=list(ch.constraints or []),
        hint=ch.hint,
        test_case_count=len(ch.test_cases or []),
        prizes=Prizes.model_validate(ch.prizes or {}),
        winners=[Winner.model_validate(w) for w in (ch.winners or [])],
        is_active=ch.is_active,
        created_at=ch.created_at,
    )

@router.post("", response_model=ScheduleResponse, status_code=201)
async def create_challenge(
    payload: ChallengeCreate,
    horizon_days: int | None = Query(default=None, ge=0, le=365),
    session: AsyncSession = Depends(get_session),
    admin=Depends(require_admin),
):
    result = await schedule(session, payload, payload.date, horizon_days)
    # A booked horizon is reported, not raised: the occupant comes back with the flag set
    return ScheduleResponse(
        requested_date=result.requested_date,
        scheduled_date=result.scheduled_date,
        scheduling_conflict=result.conflict,
        challenge=to_public(result.challenge),
    )

@router.get("/today", response_model=ChallengePublic)
async def get_today(session: AsyncSession = Depends(get_session)):
    ch = await today_challenge(session)
    if not ch:
        raise HTTPException(status_code=404, detail="No daily challenge available today")
    return to_public(ch)

@router.get("/by-date/{on}", response_model=ChallengePublic)
async def get_by_date(on: date, session: AsyncSession = Depends(get_session)):
    ch = await lookup(session, on)
    if not ch:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return to_public(ch)

@router.get("/availability", response_model=list[DateAvailability])
async def get_availability(
    days_ahead: int = Query(default=30, ge=1, le=365),
    start: date | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
    admin=Depends(require_admin),
):
    return await availability(session, start or utc_today(), days_ahead)

@router.get("/weekly", response_model=WeeklySchedule)
async def get_weekly(
    start: date | None = Query(default=None, description="Week start; defaults to this week's Monday"),
    session: AsyncSession = Depends(get_session),
    admin=Depends(require_admin),
):
    if start is None:
        today = utc_today()
        start = today - timedelta(days=today.weekday())
    return await weekly_schedule(session, start)

@router.get("/{challenge_id}", response_model=ChallengePublic)
async def get_one(challenge_id: UUID, session: AsyncSession = Depends(get_session)):
    try:
        ch = await get_challenge(session, challenge_id)
    except ChallengeNotFound:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return to_public(ch)
