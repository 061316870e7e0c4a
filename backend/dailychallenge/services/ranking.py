from __future__ import annotations
import asyncio
from typing import Awaitable, Callable, NamedTuple
from uuid import UUID

import structlog
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from dailychallenge.db import dialect_name
from dailychallenge.models.submission import Submission
from dailychallenge.schemas.challenge import Prizes, Winner
from dailychallenge.schemas.submission import LeaderboardRow
from dailychallenge.services.catalog import get_challenge

log = structlog.get_logger()

PRIZE_SLOTS = 3
PRIZE_KEYS = ("first", "second", "third")


class RankedRow(NamedTuple):
    submission_id: UUID
    user_id: UUID
    rank: int
    score: int
    completion_time: int


def ranking_key(s: Submission):
    # score desc, time asc; submitted_at/id only make equal pairs deterministic
    submitted = s.submitted_at.replace(tzinfo=None) if s.submitted_at else None  # SQLite drops tzinfo
    return (-s.score_total, s.completion_time_seconds, submitted, str(s.id))


async def _lock_challenge(session: AsyncSession, challenge_id: UUID) -> None:
    """Serialize reranks of one challenge across processes (released at commit)."""
    if dialect_name(session) == "postgresql":
        await session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:k))"), {"k": f"rerank:{challenge_id}"})


async def rerank(session: AsyncSession, challenge_id: UUID) -> list[RankedRow]:
    """
    Full recompute for one challenge:
      - passed submissions get rank 1..K by (score desc, completion time asc)
      - prize_eligible = rank <= 3
      - everything else is reset to rank=None, prize_eligible=False
    Idempotent; commits.
    """
    await _lock_challenge(session, challenge_id)
    subs = (await session.execute(
        select(Submission).where(Submission.challenge_id == challenge_id)
    )).scalars().all()

    passed = sorted((s for s in subs if s.status == "passed"), key=ranking_key)
    ranked: list[RankedRow] = []
    for idx, s in enumerate(passed):
        rank = idx + 1
        s.rank = rank
        s.prize_eligible = rank <= PRIZE_SLOTS
        ranked.append(RankedRow(s.id, s.user_id, rank, s.score_total, s.completion_time_seconds))

    for s in subs:
        if s.status != "passed":
            s.rank = None
            s.prize_eligible = False

    await session.commit()
    log.info("rerank_done", challenge_id=str(challenge_id), ranked=len(ranked), total=len(subs))
    return ranked


async def announce_winners(session: AsyncSession, challenge_id: UUID) -> tuple[list[Winner], bool]:
    """
    Copy the top 3 ranked submissions into challenge.winners with prize_status=pending.
    Returns (winners, newly_announced). A challenge that already has winners is returned as-is.
    """
    ch = await get_challenge(session, challenge_id)
    if ch.winners:
        return [Winner.model_validate(w) for w in ch.winners], False

    ranked = await rerank(session, challenge_id)
    if not ranked:
        # nothing to announce yet; a later call announces once someone passes
        log.info("winners_not_announced", challenge_id=str(challenge_id), reason="no_passing_submissions")
        return [], False
    prizes = Prizes.model_validate(ch.prizes or {})
    winners = [
        Winner(
            rank=row.rank,
            user_id=row.user_id,
            submission_id=row.submission_id,
            score=row.score,
            completion_time=row.completion_time,
            prize=getattr(prizes, PRIZE_KEYS[row.rank - 1]),
            prize_status="pending",
        )
        for row in ranked[:PRIZE_SLOTS]
    ]
    ch.winners = [w.model_dump(mode="json") for w in winners]
    await session.commit()
    log.info("winners_announced", challenge_id=str(challenge_id), winners=len(winners))
    return winners, True


async def leaderboard(session: AsyncSession, challenge_id: UUID, limit: int = 50) -> list[LeaderboardRow]:
    ch = await get_challenge(session, challenge_id)
    prizes = Prizes.model_validate(ch.prizes or {})
    rows = (await session.execute(
        select(Submission)
        .where(Submission.challenge_id == challenge_id, Submission.status == "passed")
        .order_by(Submission.score_total.desc(), Submission.completion_time_seconds.asc(), Submission.submitted_at.asc())
        .limit(limit)
    )).scalars().all()
    rows = sorted(rows, key=ranking_key)
    out = []
    for idx, s in enumerate(rows):
        rank = idx + 1
        out.append(LeaderboardRow(
            rank=rank,
            user_id=s.user_id,
            submission_id=s.id,
            score=s.score_total,
            completion_time=s.completion_time_seconds,
            breakdown=s.score_breakdown or {},
            is_winner=rank <= PRIZE_SLOTS,
            prize=getattr(prizes, PRIZE_KEYS[idx]) if rank <= PRIZE_SLOTS else None,
        ))
    return out


class RerankCoordinator:
    """
    In-process serialization of reranks per challenge.

    At most one rerank runs per challenge and at most one more waits behind it; requests
    arriving while one is already waiting are coalesced into it, since the waiting run
    will see every submission committed before it starts.
    """

    def __init__(self, runner: Callable[[UUID], Awaitable[object]]):
        self._runner = runner
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._waiting: set[UUID] = set()

    async def request(self, challenge_id: UUID) -> bool:
        """Returns False when the request was folded into an already-waiting run."""
        if challenge_id in self._waiting:
            log.debug("rerank_coalesced", challenge_id=str(challenge_id))
            return False
        self._waiting.add(challenge_id)
        lock = self._locks.setdefault(challenge_id, asyncio.Lock())
        try:
            await lock.acquire()
        except BaseException:
            self._waiting.discard(challenge_id)
            raise
        try:
            self._waiting.discard(challenge_id)
            await self._runner(challenge_id)
        finally:
            lock.release()
            if challenge_id not in self._waiting and not lock.locked():
                self._locks.pop(challenge_id, None)
        return True
