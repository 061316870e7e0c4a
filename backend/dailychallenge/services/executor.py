from __future__ import annotations
import asyncio
from typing import Sequence

import httpx
import structlog
from pydantic import ValidationError

from dailychallenge.config import settings
from dailychallenge.schemas.challenge import TestCase
from dailychallenge.schemas.submission import TestResult

log = structlog.get_logger()

TIMEOUT_MARKER = "execution_timeout"


class ExecutionError(Exception):
    pass


class ExecutionTimeout(ExecutionError):
    pass


def failed_result(index: int, case: TestCase, error: str) -> TestResult:
    return TestResult(
        test_case_index=index,
        input=case.input,
        expected_output=case.expected_output,
        actual_output="",
        passed=False,
        execution_time=0,
        memory_usage=0,
        error=error,
    )


class TestExecutor:
    """
    Contract for the external Test-Execution Service:
    (artifact, test cases) -> one TestResult per case, same order.
    Per-case failures are reported inside the result, never raised.
    """
    __test__ = False

    async def execute(self, code: str, language: str, test_cases: Sequence[TestCase]) -> list[TestResult]:
        return await self._gather(code, language, test_cases)

    async def _gather(self, code: str, language: str, test_cases: Sequence[TestCase], **ctx) -> list[TestResult]:
        results = await asyncio.gather(*(self._guarded(code, language, i, c, ctx) for i, c in enumerate(test_cases)))
        return list(results)

    async def _guarded(self, code: str, language: str, index: int, case: TestCase, ctx: dict) -> TestResult:
        try:
            return await self.run_case(code, language, index, case, **ctx)
        except ExecutionTimeout:
            log.warning("execution_timeout", test_case_index=index)
            return failed_result(index, case, TIMEOUT_MARKER)
        except ExecutionError as e:
            log.warning("execution_error", test_case_index=index, error=str(e))
            return failed_result(index, case, str(e) or "execution_error")

    async def run_case(self, code: str, language: str, index: int, case: TestCase, **ctx) -> TestResult:
        raise NotImplementedError


class HttpTestExecutor(TestExecutor):
    """
    POST {base_url}/execute
      {"code", "language", "test_case": {"input", "expected_output", "weight"}}
    -> {"actual_output", "passed", "execution_time" (ms), "memory_usage" (MB), "error"}
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        max_concurrency: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.executor_url).rstrip("/")
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.executor_timeout_seconds
        self._sem = asyncio.Semaphore(max_concurrency or settings.executor_max_concurrency)
        self._transport = transport

    async def execute(self, code: str, language: str, test_cases: Sequence[TestCase]) -> list[TestResult]:
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_seconds, transport=self._transport) as client:
            return await self._gather(code, language, test_cases, client=client)

    async def run_case(self, code: str, language: str, index: int, case: TestCase, client: httpx.AsyncClient) -> TestResult:
        async with self._sem:
            try:
                r = await asyncio.wait_for(
                    client.post("/execute", json={
                        "code": code,
                        "language": language,
                        "test_case": case.model_dump(),
                    }),
                    timeout=self.timeout_seconds,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException):
                raise ExecutionTimeout(f"test case {index} exceeded {self.timeout_seconds}s")
            except httpx.HTTPError as e:
                raise ExecutionError(f"executor unreachable: {e}")

        if r.status_code >= 400:
            raise ExecutionError(f"executor returned {r.status_code}")
        try:
            data = r.json()
        except ValueError:
            raise ExecutionError("executor returned invalid JSON")
        if not isinstance(data, dict):
            raise ExecutionError("executor returned malformed result")

        try:
            return TestResult(
                test_case_index=index,
                input=case.input,
                expected_output=case.expected_output,
                actual_output=str(data.get("actual_output") or ""),
                passed=bool(data.get("passed")),
                execution_time=max(0.0, float(data.get("execution_time") or 0)),
                memory_usage=max(0.0, float(data.get("memory_usage") or 0)),
                error=data.get("error"),
            )
        except (TypeError, ValueError, ValidationError):
            raise ExecutionError("executor returned malformed result")


def get_executor() -> TestExecutor:
    return HttpTestExecutor()
