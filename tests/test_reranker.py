"""Tests for LLM reranking."""

from unittest.mock import AsyncMock

import pytest

from memos_lifecycle.models import MemoryItem
from memos_lifecycle.reranker import build_rerank_prompt, rerank, valid_indices
from memos_lifecycle.stats import Stats


@pytest.fixture
def items() -> list[MemoryItem]:
    return [MemoryItem(content=f"memory number {i}") for i in range(4)]


@pytest.fixture
def completer() -> AsyncMock:
    return AsyncMock()


async def test_keeps_model_order(completer: AsyncMock, items) -> None:
    completer.complete.return_value = "[2, 0]"
    stats = Stats()
    kept = await rerank(completer, "query", items, stats=stats)
    assert [m.content for m in kept] == ["memory number 2", "memory number 0"]
    assert stats.rerank.kept == 2
    assert stats.rerank.total == 4
    assert stats.rerank.count == 1


async def test_empty_array_filters_everything(completer: AsyncMock, items) -> None:
    completer.complete.return_value = "[]"
    assert await rerank(completer, "query", items) == []


async def test_accepts_string_indices(completer: AsyncMock, items) -> None:
    completer.complete.return_value = '["1", "3"]'
    kept = await rerank(completer, "query", items)
    assert [m.content for m in kept] == ["memory number 1", "memory number 3"]


async def test_fails_open_on_error(completer: AsyncMock, items) -> None:
    completer.complete.side_effect = RuntimeError("model down")
    stats = Stats()
    assert await rerank(completer, "query", items, stats=stats) == items
    assert stats.rerank.errors == 1


async def test_fails_open_on_unparseable(completer: AsyncMock, items) -> None:
    completer.complete.return_value = "I think all of them"
    assert await rerank(completer, "query", items) == items


async def test_fails_open_on_no_valid_indices(completer: AsyncMock, items) -> None:
    completer.complete.return_value = "[17, -1]"
    assert await rerank(completer, "query", items) == items


async def test_skips_small_inputs(completer: AsyncMock, items) -> None:
    assert await rerank(completer, "query", items[:2]) == items[:2]
    assert await rerank(completer, "query", []) == []
    completer.complete.assert_not_awaited()


async def test_uses_deterministic_short_completion(completer: AsyncMock, items) -> None:
    completer.complete.return_value = "[0]"
    await rerank(completer, "query", items)
    kwargs = completer.complete.await_args.kwargs
    assert kwargs["temperature"] == 0
    assert kwargs["max_tokens"] == 50


def test_valid_indices_filters_and_dedups() -> None:
    assert valid_indices([0, "2", 2, 9, True, 1.0, "x", -1], 4) == [0, 2, 1]


def test_prompt_lists_indexed_snippets(items) -> None:
    prompt = build_rerank_prompt("coffee", items[:2])
    assert 'Query: "coffee"' in prompt
    assert "[0] memory number 0" in prompt
    assert "[1] memory number 1" in prompt
