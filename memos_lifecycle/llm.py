"""Single-shot text completion for summarization, extraction, and reranking.

Two backends: MemOS's own ``/product/chat/complete`` endpoint (default) and
the Anthropic API directly. Both return plain text; callers parse it with
:func:`memos_lifecycle.utils.parse_json`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import anthropic

from memos_lifecycle.client import Timeouts

if TYPE_CHECKING:
    from memos_lifecycle.client import MemosClient
    from memos_lifecycle.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2048


class Completer(Protocol):
    async def complete(
        self,
        prompt: str,
        *,
        timeout: float = Timeouts.DEFAULT,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str: ...


class MemosCompleter:
    """Completion through MemOS, with its memory side-effects disabled."""

    def __init__(self, client: MemosClient) -> None:
        self._client = client

    async def complete(
        self,
        prompt: str,
        *,
        timeout: float = Timeouts.DEFAULT,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        body: dict[str, Any] = {
            "query": prompt,
            "user_id": self._client.user_id,
            "readable_cube_ids": [self._client.cube_id],
            "enable_memory": False,
            "add_message_on_answer": False,
        }
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        if temperature is not None:
            body["temperature"] = temperature

        result = await self._client.call(
            "/product/chat/complete", body, retries=1, timeout=timeout
        )
        if not isinstance(result, dict):
            return ""
        data = result.get("data")
        if isinstance(data, dict) and data.get("response"):
            return str(data["response"])
        return str(result.get("response") or "")


class AnthropicCompleter:
    """Completion straight from Claude. No tools, no memory, no streaming."""

    def __init__(self, api_key: str, model: str) -> None:
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._model = model

    async def complete(
        self,
        prompt: str,
        *,
        timeout: float = Timeouts.DEFAULT,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": timeout,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = await self._client.messages.create(**kwargs)
        return "".join(block.text for block in response.content if block.type == "text")


def build_completer(settings: Settings, client: MemosClient) -> Completer:
    """Pick the completion backend named by ``settings.llm_backend``."""
    if settings.llm_backend == "anthropic":
        if settings.anthropic_api_key:
            logger.info("LLM backend: anthropic (%s)", settings.memory_model)
            return AnthropicCompleter(settings.anthropic_api_key, settings.memory_model)
        logger.warning("LLM backend 'anthropic' requested without ANTHROPIC_API_KEY, using MemOS")
    return MemosCompleter(client)
