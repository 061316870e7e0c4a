from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from uuid import UUID

import structlog
from sqlalchemy import select, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dailychallenge.models.submission import Submission
from dailychallenge.schemas.challenge import TestCase
from dailychallenge.schemas.submission import SubmitRequest
from dailychallenge.services.catalog import get_challenge
from dailychallenge.services.executor import TestExecutor
from dailychallenge.services.scoring import score

log = structlog.get_logger()


class DuplicateSubmission(Exception):
    pass


async def has_submitted(session: AsyncSession, user_id: UUID, challenge_id: UUID) -> bool:
    return bool(await session.scalar(
        select(exists().where(
            Submission.user_id == user_id,
            Submission.challenge_id == challenge_id,
            Submission.status.in_(("submitted", "passed", "failed")),
        ))
    ))


def _completion_seconds(started_at: datetime | None, submitted_at: datetime, time_limit_minutes: int) -> int:
    # Without a client start time, assume the full time limit was used
    if started_at is None:
        return int(time_limit_minutes) * 60
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=dt_tz.utc)
    return max(0, int((submitted_at - started_at).total_seconds()))


async def submit(
    session: AsyncSession,
    executor: TestExecutor,
    user_id: UUID,
    challenge_id: UUID,
    artifact: SubmitRequest,
) -> Submission:
    """
    Record the single allowed attempt of `user_id` at `challenge_id`.

    Raises ChallengeNotFound / DuplicateSubmission; otherwise runs the tests, scores the
    result and commits. Ranking and points are the caller's follow-up (see services.events).
    """
    ch = await get_challenge(session, challenge_id)

    if await has_submitted(session, user_id, ch.id):
        raise DuplicateSubmission(f"user {user_id} already submitted to challenge {ch.id}")

    cases = [TestCase.model_validate(tc) for tc in (ch.test_cases or [])]
    results = await executor.execute(artifact.code, artifact.language, cases)
    result = score(results, ch.scoring_criteria)

    submitted_at = datetime.now(dt_tz.utc)
    all_passed = bool(results) and all(r.passed for r in results)
    s = Submission(
        challenge_id=ch.id,
        user_id=user_id,
        code=artifact.code,
        language=artifact.language,
        test_results=[r.model_dump(mode="json") for r in results],
        score_total=result.total,
        score_breakdown=result.breakdown,
        rating=result.rating,
        started_at=artifact.started_at,
        submitted_at=submitted_at,
        completion_time_seconds=_completion_seconds(artifact.started_at, submitted_at, ch.time_limit_minutes),
        hints_used=artifact.hints_used,
        status="passed" if all_passed else "failed",
        rank=None,
        prize_eligible=False,
    )
    session.add(s)
    try:
        await session.commit()
    except IntegrityError:
        # lost the race on uq_submission_one_per_challenge; `ch` is expired after rollback
        await session.rollback()
        raise DuplicateSubmission(f"user {user_id} already submitted to challenge {challenge_id}")
    await session.refresh(s)

    log.info(
        "submission_recorded",
        submission_id=str(s.id),
        challenge_id=str(s.challenge_id),
        user_id=str(user_id),
        status=s.status,
        score=s.score_total,
    )
    return s
