from __future__ import annotations
import asyncio
from uuid import UUID
import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker
from dailychallenge.db import SessionLocal
from dailychallenge.models.challenge import Challenge
from dailychallenge.models.submission import Submission
from dailychallenge.schemas.challenge import Winner
from dailychallenge.services.points import award_for_submission, award_for_rank, AwardPersistenceFailure

log = structlog.get_logger()

async def _award_submission(submission_id: str, session_factory: async_sessionmaker = SessionLocal):
    async with session_factory() as session:
        s = await session.get(Submission, UUID(str(submission_id)))
        if not s:
            log.warning("award_skipped_missing_submission", submission_id=str(submission_id))
            return
        try:
            await award_for_submission(session, s)
        except AwardPersistenceFailure:
            # left for reconciliation; re-running this job is safe
            log.error("award_deferred", submission_id=str(submission_id), user_id=str(s.user_id))
            raise

async def _award_winners(challenge_id: str, session_factory: async_sessionmaker = SessionLocal):
    async with session_factory() as session:
        ch = await session.get(Challenge, UUID(str(challenge_id)))
        if not ch:
            return
        for raw in ch.winners or []:
            w = Winner.model_validate(raw)
            try:
                await award_for_rank(session, w.user_id, w.submission_id, w.rank)
            except AwardPersistenceFailure:
                log.error("award_deferred", challenge_id=str(challenge_id), user_id=str(w.user_id), rank=w.rank)
                raise

def award_submission(submission_id: str):
    # RQ entry point (sync); run the async coroutine
    asyncio.run(_award_submission(submission_id))

def award_winners(challenge_id: str):
    asyncio.run(_award_winners(challenge_id))
