import asyncio
import json
import httpx
import pytest
from dailychallenge.schemas.challenge import TestCase
from dailychallenge.services.executor import TIMEOUT_MARKER, HttpTestExecutor

CASES = [TestCase(input="1 2", expected_output="3"), TestCase(input="2 2", expected_output="4")]


@pytest.mark.asyncio
async def test_http_executor_maps_results_in_order():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = request.content
        seen.append(body)
        case = json.loads(body)["test_case"]
        return httpx.Response(200, json={
            "actual_output": case["expected_output"],
            "passed": case["input"] == "1 2",
            "execution_time": 12.5,
            "memory_usage": 3,
        })

    ex = HttpTestExecutor(base_url="http://exec", timeout_seconds=1, max_concurrency=2,
                          transport=httpx.MockTransport(handler))
    results = await ex.execute("print(a+b)", "python", CASES)
    assert [r.test_case_index for r in results] == [0, 1]
    assert [r.passed for r in results] == [True, False]
    assert results[0].execution_time == 12.5
    assert results[1].expected_output == "4"
    assert len(seen) == 2

@pytest.mark.asyncio
async def test_http_executor_timeout_is_a_failed_case():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={"passed": True})

    ex = HttpTestExecutor(base_url="http://exec", timeout_seconds=0.05, transport=httpx.MockTransport(handler))
    results = await ex.execute("while True: pass", "python", CASES[:1])
    assert len(results) == 1
    assert results[0].passed is False
    assert results[0].error == TIMEOUT_MARKER

@pytest.mark.asyncio
async def test_http_executor_server_error_is_a_failed_case():
    ex = HttpTestExecutor(base_url="http://exec", timeout_seconds=1,
                          transport=httpx.MockTransport(lambda request: httpx.Response(502)))
    results = await ex.execute("x", "python", CASES)
    assert all(not r.passed for r in results)
    assert all("502" in r.error for r in results)

@pytest.mark.asyncio
async def test_fake_executor_absorbs_errors(executor):
    results = await executor.execute("crash", "python", CASES)
    assert [r.passed for r in results] == [False, False]
    assert results[0].error == "segfault"
    results = await executor.execute("slow", "python", CASES)
    assert all(r.error == TIMEOUT_MARKER for r in results)

@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    b"[]",
    b"null",
    b'{"passed": true, "execution_time": "fast"}',
    b'{"passed": true, "memory_usage": [1, 2]}',
    b'{"passed": true, "error": {"code": 1}}',
])
async def test_http_executor_malformed_reply_is_a_failed_case(body):
    ex = HttpTestExecutor(base_url="http://exec", timeout_seconds=1,
                          transport=httpx.MockTransport(lambda request: httpx.Response(200, content=body)))
    results = await ex.execute("x", "python", CASES)
    assert [r.passed for r in results] == [False, False]
    assert all(r.error == "executor returned malformed result" for r in results)

@pytest.mark.asyncio
async def test_http_client_uses_configured_timeout(monkeypatch):
    seen = {}

    class RecordingClient(httpx.AsyncClient):
        def __init__(self, *args, **kwargs):
            seen["timeout"] = kwargs.get("timeout")
            super().__init__(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", RecordingClient)
    ex = HttpTestExecutor(base_url="http://exec", timeout_seconds=30,
                          transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"passed": True})))
    results = await ex.execute("x", "python", CASES[:1])
    assert results[0].passed is True
    assert seen["timeout"] == 30
