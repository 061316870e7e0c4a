from __future__ import annotations
import asyncio
from uuid import UUID
from sqlalchemy.ext.asyncio import async_sessionmaker
from dailychallenge.db import SessionLocal
from dailychallenge.services.ranking import rerank

async def _run(challenge_id: str, session_factory: async_sessionmaker = SessionLocal):
    async with session_factory() as session:
        await rerank(session, UUID(str(challenge_id)))

def rerank_challenge(challenge_id: str):
    # RQ entry point (sync); run the async coroutine
    asyncio.run(_run(challenge_id))
