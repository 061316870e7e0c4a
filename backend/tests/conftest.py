import os

# must be set before dailychallenge.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["JOBS_MODE"] = "inline"
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid
from datetime import date, timedelta
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dailychallenge.db import Base, get_session
import dailychallenge.models.challenge  # noqa: F401 (registers tables)
import dailychallenge.models.submission  # noqa: F401
import dailychallenge.models.ledger  # noqa: F401
from dailychallenge.main import app
from dailychallenge.schemas.challenge import ChallengeCreate, TestCase
from dailychallenge.schemas.submission import TestResult
from dailychallenge.security import make_access_token
from dailychallenge.services.events import EventDispatcher, get_dispatcher
from dailychallenge.services.executor import ExecutionError, ExecutionTimeout, TestExecutor, get_executor


class FakeExecutor(TestExecutor):
    """
    Code-driven stand-in for the execution service:
      "wrong"      -> every case fails
      "fail:<i,j>" -> listed case indexes fail
      "slow"       -> every case times out
      "crash"      -> every case errors
      anything else passes
    """

    def __init__(self, execution_time: float = 0, memory_usage: float = 0):
        self.execution_time = execution_time
        self.memory_usage = memory_usage
        self.calls = 0

    async def run_case(self, code, language, index, case, **ctx):
        self.calls += 1
        if code == "slow":
            raise ExecutionTimeout("too slow")
        if code == "crash":
            raise ExecutionError("segfault")
        failing: set[int] = set()
        if code == "wrong":
            failing = {index}
        elif code.startswith("fail:"):
            failing = {int(i) for i in code[5:].split(",") if i}
        passed = index not in failing
        return TestResult(
            test_case_index=index,
            input=case.input,
            expected_output=case.expected_output,
            actual_output=case.expected_output if passed else "nope",
            passed=passed,
            execution_time=self.execution_time,
            memory_usage=self.memory_usage,
        )


def challenge_payload(on: date, **overrides) -> dict:
    data = {
        "date": on.isoformat(),
        "title": "Two Sum",
        "description": "Return indexes of the two numbers adding up to target.",
        "difficulty": "Easy",
        "category": "Arrays",
        "test_cases": [
            {"input": "[2,7,11,15] 9", "expected_output": "[0,1]"},
            {"input": "[3,2,4] 6", "expected_output": "[1,2]"},
        ],
        "prizes": {"first": {"amount": 100}, "second": {"amount": 50}, "third": {"amount": 25}},
    }
    data.update(overrides)
    return data


def make_challenge(on: date, **overrides) -> ChallengeCreate:
    return ChallengeCreate.model_validate(challenge_payload(on, **overrides))


def auth_headers(user_id: uuid.UUID | None = None, role: str | None = None) -> dict:
    return {"Authorization": f"Bearer {make_access_token(str(user_id or uuid.uuid4()), role=role)}"}


@pytest.fixture
def today() -> date:
    from dailychallenge.services.catalog import utc_today
    return utc_today()


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    # file-backed so concurrent background sessions get their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as s:
        yield s


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def dispatcher(session_factory) -> EventDispatcher:
    return EventDispatcher(mode="inline", session_factory=session_factory)


@pytest_asyncio.fixture
async def client(session_factory, executor, dispatcher) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def override_get_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_executor] = lambda: executor
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await dispatcher.drain()
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers(role="admin")
