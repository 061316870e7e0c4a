from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Callable
from uuid import UUID

import structlog
from redis import Redis
from rq import Queue
from rq.exceptions import NoSuchJobError
from rq.job import Job, JobStatus
from sqlalchemy.ext.asyncio import async_sessionmaker

from dailychallenge.config import settings
from dailychallenge.db import SessionLocal
from dailychallenge.jobs import awards as award_jobs
from dailychallenge.jobs import notify as notify_jobs
from dailychallenge.jobs import rerank as rerank_jobs
from dailychallenge.models.submission import Submission
from dailychallenge.schemas.challenge import Winner
from dailychallenge.services import notifications
from dailychallenge.services.ranking import RerankCoordinator

log = structlog.get_logger()


def rerank_job_id(challenge_id: UUID) -> str:
    return f"rerank-{challenge_id}"


class EventDispatcher:
    """
    Outbound work that follows a committed write; none of it can fail the write.

    mode="rq":     enqueue jobs on Redis; reranks coalesce on a fixed job id per challenge
                   and serialize on a database advisory lock inside the job.
    mode="inline": run the same job bodies as asyncio tasks in this process; reranks go
                   through a RerankCoordinator.
    """

    def __init__(
        self,
        mode: str | None = None,
        session_factory: async_sessionmaker = SessionLocal,
        queue: Queue | None = None,
    ):
        self.mode = mode or settings.jobs_mode
        self.session_factory = session_factory
        self._queue = queue
        self._tasks: set[asyncio.Task] = set()
        self.coordinator = RerankCoordinator(lambda cid: rerank_jobs._run(str(cid), self.session_factory))

    # ---------- plumbing ----------

    @property
    def queue(self) -> Queue:
        if self._queue is None:
            self._queue = Queue(settings.jobs_queue, connection=Redis.from_url(settings.redis_url))
        return self._queue

    def _spawn(self, name: str, coro: Awaitable[Any]) -> None:
        async def guarded():
            try:
                await coro
            except Exception as e:
                log.error("background_task_failed", task=name, error=str(e))

        task = asyncio.create_task(guarded())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _enqueue(self, func: Callable, *args, job_id: str | None = None) -> None:
        try:
            self.queue.enqueue(func, *args, job_id=job_id, job_timeout=120)
        except Exception as e:
            # Non-fatal: reconciliation / the next trigger picks it up
            log.error("enqueue_failed", job=func.__name__, error=str(e))

    async def drain(self) -> None:
        """Wait for in-flight inline tasks (tests, shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ---------- events ----------

    async def rerank_requested(self, challenge_id: UUID) -> None:
        if self.mode == "inline":
            self._spawn("rerank", self.coordinator.request(challenge_id))
            return
        job_id = rerank_job_id(challenge_id)
        try:
            if Job.fetch(job_id, connection=self.queue.connection).get_status() == JobStatus.QUEUED:
                log.debug("rerank_coalesced", challenge_id=str(challenge_id))
                return
        except NoSuchJobError:
            pass
        except Exception as e:
            log.error("enqueue_failed", job="rerank_challenge", error=str(e))
            return
        self._enqueue(rerank_jobs.rerank_challenge, str(challenge_id), job_id=job_id)

    async def submission_recorded(self, s: Submission) -> None:
        await self.rerank_requested(s.challenge_id)
        payload = {
            "submission_id": str(s.id),
            "challenge_id": str(s.challenge_id),
            "user_id": str(s.user_id),
            "status": s.status,
            "score": s.score_total,
        }
        if self.mode == "inline":
            self._spawn("award_submission", award_jobs._award_submission(str(s.id), self.session_factory))
            self._spawn("notify", notifications.send(notifications.SUBMISSION_CREATED, payload))
        else:
            self._enqueue(award_jobs.award_submission, str(s.id))
            self._enqueue(notify_jobs.deliver, notifications.SUBMISSION_CREATED, payload)

    async def winners_announced(self, challenge_id: UUID, winners: list[Winner]) -> None:
        payload = {
            "challenge_id": str(challenge_id),
            "winners": [{"rank": w.rank, "user_id": str(w.user_id), "score": w.score} for w in winners],
        }
        if self.mode == "inline":
            self._spawn("award_winners", award_jobs._award_winners(str(challenge_id), self.session_factory))
            self._spawn("notify", notifications.send(notifications.WINNERS_ANNOUNCED, payload))
        else:
            self._enqueue(award_jobs.award_winners, str(challenge_id))
            self._enqueue(notify_jobs.deliver, notifications.WINNERS_ANNOUNCED, payload)


dispatcher = EventDispatcher()

def get_dispatcher() -> EventDispatcher:
    return dispatcher
