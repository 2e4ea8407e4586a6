"""Shared test fixtures."""

import json
from typing import Any

import httpx
import pytest

from memos_lifecycle.client import MemosClient
from memos_lifecycle.config import Settings
from memos_lifecycle.state import PluginState
from memos_lifecycle.store import MemoryStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def search_response(
    text: list[dict] | None = None,
    skills: list[dict] | None = None,
    prefs: list[dict] | None = None,
) -> dict[str, Any]:
    """A ``/product/search`` body in MemOS's nested channel shape."""
    return {
        "code": 200,
        "data": {
            "text_mem": [{"cube_id": "default", "memories": text or []}],
            "skill_mem": [{"cube_id": "default", "memories": skills or []}],
            "pref_mem": [{"cube_id": "default", "memories": prefs or []}],
        },
    }


class FakeMemos:
    """In-process MemOS stand-in served through ``httpx.MockTransport``.

    Records every POST body by path. ``search`` may be set to a callable
    taking the request body and returning a full search response.
    """

    payload = staticmethod(search_response)

    def __init__(self) -> None:
        self.healthy = True
        self.requests: list[tuple[str, dict]] = []
        self.search = None
        self.chat_responses: list[str] = []
        self.fail_paths: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "HEAD":
            return httpx.Response(200 if self.healthy else 503)

        body = json.loads(request.content) if request.content else {}
        self.requests.append((path, body))
        if path in self.fail_paths:
            return httpx.Response(500, text="internal error")
        if path == "/product/search":
            payload = self.search(body) if self.search else search_response()
            return httpx.Response(200, json=payload)
        if path == "/product/add":
            return httpx.Response(200, json={"code": 200, "message": "ok"})
        if path == "/product/chat/complete":
            text = self.chat_responses.pop(0) if self.chat_responses else "[]"
            return httpx.Response(200, json={"code": 200, "data": {"response": text}})
        return httpx.Response(404, text="not found")

    def respond_with(
        self,
        text: list[dict] | None = None,
        skills: list[dict] | None = None,
        prefs: list[dict] | None = None,
    ) -> None:
        """Serve the same search result for every query."""
        payload = search_response(text, skills, prefs)
        self.search = lambda body: payload

    def bodies(self, path: str) -> list[dict]:
        return [body for p, body in self.requests if p == path]


@pytest.fixture(autouse=True)
def _no_retry_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    """Retries back off instantly in tests."""
    monkeypatch.setattr("memos_lifecycle.client.RETRY_BASE_DELAY", 0.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(memos_api_url="http://memos.test", memos_user_id="u1", memos_cube_id="c1")


@pytest.fixture
def memos() -> FakeMemos:
    return FakeMemos()


@pytest.fixture
async def client(settings: Settings, memos: FakeMemos):
    c = MemosClient(settings, transport=httpx.MockTransport(memos.handler))
    yield c
    await c.aclose()


@pytest.fixture
def state(clock: FakeClock) -> PluginState:
    return PluginState(clock=clock)


@pytest.fixture
def store(client: MemosClient, state: PluginState) -> MemoryStore:
    return MemoryStore(client, stats=state.stats)
