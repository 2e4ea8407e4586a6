"""command:new: seed a fresh session with a short block of recent context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from memos_lifecycle.formatting import format_context_block

if TYPE_CHECKING:
    from memos_lifecycle.health import HealthProbe
    from memos_lifecycle.store import MemoryStore

logger = logging.getLogger(__name__)

BOOTSTRAP_QUERY = "important user context preferences decisions recent"
BOOTSTRAP_TOP_K = 5


class SessionStartHook:
    def __init__(self, store: MemoryStore, health: HealthProbe) -> None:
        self._store = store
        self._health = health

    async def __call__(self, event: dict[str, Any], ctx: Any = None) -> None:
        messages = event.get("messages") if isinstance(event, dict) else None
        if not isinstance(messages, list):
            return
        try:
            if not await self._health.is_healthy():
                return
            memories = await self._store.search_text(BOOTSTRAP_QUERY, BOOTSTRAP_TOP_K)
        except Exception as exc:
            logger.warning("Context load failed: %s", exc)
            return

        block = format_context_block(
            memories, max_items=BOOTSTRAP_TOP_K, max_chars=200, header="Recent context:"
        )
        if not block:
            logger.info("No memories found for new session")
            return
        messages.append(f"\n<user_memory_context>\n{block}\n</user_memory_context>")
        logger.info("Session context loaded: %d memories", len(memories))
