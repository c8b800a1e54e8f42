import json
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from nutrichat.core.report_schema import HEALTH_REPORT_FUNCTION_NAME
from nutrichat.services.llm import GeminiClient, get_gemini_client

TEST_BASE_URL = "https://gemini.test/v1beta"


class FakeScenario(str, Enum):
    STREAM_HELLO_WORLD = "STREAM_HELLO_WORLD"
    STREAM_MULTIBYTE = "STREAM_MULTIBYTE"
    STREAM_MALFORMED_FRAGMENT = "STREAM_MALFORMED_FRAGMENT"
    REPORT_PART_CALL = "REPORT_PART_CALL"
    REPORT_TOP_LEVEL_CALL = "REPORT_TOP_LEVEL_CALL"
    REPORT_FENCED_TEXT = "REPORT_FENCED_TEXT"
    REPORT_EMPTY = "REPORT_EMPTY"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    TIMEOUT = "TIMEOUT"


def split_bytes(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


async def _aiter(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def candidate_response(parts: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "candidates": [
            {"content": {"parts": parts, "role": "model"}, "finishReason": "STOP", "index": 0}
        ]
    }


class FakeGeminiTransport:
    """Request handler for ``httpx.MockTransport`` that plays back a scenario."""

    def __init__(self, scenario: FakeScenario, fixture_dir: Path, chunk_size: int = 7) -> None:
        self.scenario = scenario
        self.fixture_dir = fixture_dir
        self.chunk_size = chunk_size
        self.requests: list[httpx.Request] = []

    def _load_json(self, name: str) -> dict:
        return json.loads((self.fixture_dir / f"{name}.json").read_text(encoding="utf-8"))

    def _stream_body(self) -> bytes:
        name = self.scenario.value if self.scenario.value.startswith("STREAM_") else "STREAM_HELLO_WORLD"
        return (self.fixture_dir / f"{name}.txt").read_bytes()

    def _report_body(self) -> dict:
        if self.scenario == FakeScenario.REPORT_EMPTY:
            return self._load_json("REPORT_EMPTY")
        args = self._load_json("REPORT_ARGS")
        if self.scenario == FakeScenario.REPORT_TOP_LEVEL_CALL:
            return {"functionCalls": [{"name": HEALTH_REPORT_FUNCTION_NAME, "args": args}]}
        if self.scenario == FakeScenario.REPORT_FENCED_TEXT:
            text = f"Here is your report:\n```json\n{json.dumps(args, ensure_ascii=False)}\n```\nKeep it up!"
            return candidate_response([{"text": text}])
        return candidate_response([{"functionCall": {"name": HEALTH_REPORT_FUNCTION_NAME, "args": args}}])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.scenario == FakeScenario.TIMEOUT:
            raise httpx.ReadTimeout("simulated timeout", request=request)
        if self.scenario == FakeScenario.UPSTREAM_ERROR:
            return httpx.Response(500, json={"error": {"code": 500, "message": "backend unavailable"}})
        if request.url.path.endswith(":streamGenerateContent"):
            chunks = split_bytes(self._stream_body(), self.chunk_size)
            return httpx.Response(200, headers={"Content-Type": "application/json"}, content=_aiter(chunks))
        return httpx.Response(200, json=self._report_body())

    def request_body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


class FakeByteStream:
    def __init__(self, chunks: Iterable[bytes], error: Optional[Exception] = None) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.reads = 0
        self.close_calls = 0

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            self.reads += 1
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.close_calls += 1


def make_gemini_client(transport: FakeGeminiTransport) -> GeminiClient:
    return GeminiClient(
        "test-key",
        base_url=TEST_BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
    )


@pytest.fixture(scope="session")
def fixture_dir() -> Path:
    return Path(__file__).resolve().parent / "fixtures" / "gemini"


@pytest.fixture(scope="session")
def app():
    from nutrichat.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def client(app):
    app.dependency_overrides = {}
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def fake_transport_factory(fixture_dir: Path) -> Callable[[FakeScenario], FakeGeminiTransport]:
    def _factory(scenario: FakeScenario) -> FakeGeminiTransport:
        return FakeGeminiTransport(scenario=scenario, fixture_dir=fixture_dir)

    return _factory


@pytest.fixture
def override_llm(app, fake_transport_factory):
    def _override(scenario: FakeScenario) -> FakeGeminiTransport:
        transport = fake_transport_factory(scenario)
        app.dependency_overrides[get_gemini_client] = lambda: make_gemini_client(transport)
        return transport

    return _override
