from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from dailychallenge.db import get_session
from dailychallenge.auth_deps import get_current_user, require_admin
from dailychallenge.models.submission import Submission
from dailychallenge.schemas.challenge import Winner
from dailychallenge.schemas.submission import SubmitRequest, SubmissionPublic, LeaderboardRow, RerankResult, TestResult
from dailychallenge.services.catalog import ChallengeNotFound, get_challenge
from dailychallenge.services.events import EventDispatcher, get_dispatcher
from dailychallenge.services.executor import TestExecutor, get_executor
from dailychallenge.services.intake import DuplicateSubmission, submit
from dailychallenge.services.ranking import announce_winners, leaderboard, rerank

router = APIRouter(prefix="/challenges", tags=["submissions"])
log = structlog.get_logger()

def _pub(s: Submission) -> SubmissionPublic:
    return SubmissionPublic(
        id=s.id,
        challenge_id=s.challenge_id,
        user_id=s.user_id,
        language=s.language,
        status=s.status,
        score=s.score_total,
        rating=s.rating,
        breakdown=s.score_breakdown or {},
        test_results=[TestResult.model_validate(r) for r in (s.test_results or [])],
        completion_time_seconds=s.completion_time_seconds,
        submitted_at=s.submitted_at,
        rank=s.rank,
        prize_eligible=s.prize_eligible,
    )

@router.post("/{challenge_id}/submissions", response_model=SubmissionPublic, status_code=201)
async def submit_solution(
    challenge_id: UUID,
    payload: SubmitRequest,
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
    executor: TestExecutor = Depends(get_executor),
    events: EventDispatcher = Depends(get_dispatcher),
):
    try:
        s = await submit(session, executor, user.id, challenge_id, payload)
    except ChallengeNotFound:
        raise HTTPException(status_code=404, detail="Challenge not found")
    except DuplicateSubmission:
        raise HTTPException(status_code=409, detail="You have already submitted a solution for this challenge")

    # Recorded with a score; ranking/points/notifications are best-effort from here
    try:
        await events.submission_recorded(s)
    except Exception as e:
        log.error("dispatch_failed", submission_id=str(s.id), error=str(e))
    return _pub(s)

@router.get("/{challenge_id}/submissions/me", response_model=SubmissionPublic)
async def my_submission(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
):
    s = await session.scalar(
        select(Submission).where(Submission.challenge_id == challenge_id, Submission.user_id == user.id)
    )
    if not s:
        raise HTTPException(status_code=404, detail="No submission for this challenge")
    return _pub(s)

@router.get("/{challenge_id}/leaderboard", response_model=list[LeaderboardRow])
async def get_leaderboard(
    challenge_id: UUID,
    limit: int = Query(default=50, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
):
    try:
        return await leaderboard(session, challenge_id, limit)
    except ChallengeNotFound:
        raise HTTPException(status_code=404, detail="Challenge not found")

@router.post("/{challenge_id}/rerank", response_model=RerankResult)
async def force_rerank(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    admin=Depends(require_admin),
):
    try:
        await get_challenge(session, challenge_id)
    except ChallengeNotFound:
        raise HTTPException(status_code=404, detail="Challenge not found")
    ranked = await rerank(session, challenge_id)
    return RerankResult(challenge_id=challenge_id, ranked=len(ranked))

@router.post("/{challenge_id}/winners", response_model=list[Winner])
async def post_winners(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    admin=Depends(require_admin),
    events: EventDispatcher = Depends(get_dispatcher),
):
    try:
        winners, created = await announce_winners(session, challenge_id)
    except ChallengeNotFound:
        raise HTTPException(status_code=404, detail="Challenge not found")
    if created:
        try:
            await events.winners_announced(challenge_id, winners)
        except Exception as e:
            log.error("dispatch_failed", challenge_id=str(challenge_id), error=str(e))
    return winners
