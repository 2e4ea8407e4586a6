"""Tests for the command:new session bootstrap hook."""

from unittest.mock import AsyncMock

import pytest

from memos_lifecycle.hooks import SessionStartHook
from memos_lifecycle.hooks.session_start import BOOTSTRAP_QUERY


@pytest.fixture
def health() -> AsyncMock:
    h = AsyncMock()
    h.is_healthy.return_value = True
    return h


@pytest.fixture
def hook(store, health) -> SessionStartHook:
    return SessionStartHook(store, health)


async def test_appends_recent_context(hook: SessionStartHook, memos) -> None:
    memos.respond_with(text=[{"memory": "User is preparing the v2 launch"}])
    event = {"messages": []}

    await hook(event)

    assert event["messages"] == [
        "\n<user_memory_context>\nRecent context:\n"
        "- User is preparing the v2 launch\n</user_memory_context>"
    ]
    [search] = memos.bodies("/product/search")
    assert search["query"] == BOOTSTRAP_QUERY
    assert search["top_k"] == 5


async def test_truncates_items(hook: SessionStartHook, memos) -> None:
    memos.respond_with(text=[{"memory": "m" * 500}])
    event = {"messages": []}
    await hook(event)
    assert "- " + "m" * 200 + "…\n" in event["messages"][0]


async def test_nothing_found(hook: SessionStartHook) -> None:
    event = {"messages": []}
    await hook(event)
    assert event["messages"] == []


async def test_unhealthy(hook: SessionStartHook, health, memos) -> None:
    health.is_healthy.return_value = False
    event = {"messages": []}
    await hook(event)
    assert event["messages"] == []
    assert memos.requests == []


async def test_search_failure(hook: SessionStartHook, memos) -> None:
    memos.fail_paths.add("/product/search")
    event = {"messages": []}
    await hook(event)
    assert event["messages"] == []


async def test_requires_message_list(hook: SessionStartHook, memos) -> None:
    await hook({})
    await hook(None)
    assert memos.requests == []
