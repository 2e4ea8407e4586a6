"""agent_end: typed memory extraction from the finished conversation.

Throttled to one run per window, and skipped right after a compaction
because the flush already captured the conversation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from memos_lifecycle.dedup import compute_content_hash
from memos_lifecycle.extraction import ExtractedMemory, extract_all_typed
from memos_lifecycle.memory_types import MemoryType
from memos_lifecycle.summarize import flatten_messages
from memos_lifecycle.utils import generate_task_id

if TYPE_CHECKING:
    from collections.abc import Callable

    from memos_lifecycle.health import HealthProbe
    from memos_lifecycle.llm import Completer
    from memos_lifecycle.state import PluginState
    from memos_lifecycle.store import MemoryStore

logger = logging.getLogger(__name__)

RECENT_MESSAGES = 12


def memory_record(memory: ExtractedMemory) -> tuple[str, dict[str, Any]]:
    """Content and ``info`` for persisting one extracted memory.

    Tasks are written like tool-created ones (``TASK: <title>``, fresh
    ``task_id``, ``pending``) so reconciliation picks them up.
    """
    info: dict[str, Any] = {"_type": memory.type, "source": "typed_extraction"}
    if memory.type != MemoryType.TASK:
        return memory.content, info

    title = memory.title or memory.content
    info.update(task_id=generate_task_id(), task_status="pending", title=title)
    for name in ("priority", "due_date", "project", "desc"):
        value = getattr(memory, name)
        if value:
            info[name] = value
    content = f"TASK: {memory.title}" if memory.title else memory.content
    return content, info


class FactExtractionHook:
    def __init__(
        self,
        state: PluginState,
        store: MemoryStore,
        health: HealthProbe,
        completer: Completer,
    ) -> None:
        self._state = state
        self._store = store
        self._health = health
        self._completer = completer

    async def __call__(self, event: dict[str, Any], ctx: Any = None) -> None:
        try:
            await self.run(event)
        except Exception:
            logger.exception("Typed memory extraction failed")

    async def run(self, event: dict[str, Any]) -> None:
        if not isinstance(event, dict) or not event.get("success"):
            return
        messages = event.get("messages")
        if not isinstance(messages, list) or len(messages) < 2:
            return

        if self._state.is_post_compaction():
            logger.info("Post-compaction, skipping fact extraction (already flushed)")
            return

        stats = self._state.stats.extraction
        if not self._state.try_start_extraction():
            stats.throttled += 1
            return

        flat = flatten_messages(messages)
        if len(flat) < 2:
            return
        if not await self._health.is_healthy():
            logger.warning("MemOS unhealthy, skipping fact extraction")
            return

        stats.count += 1
        text = "\n\n".join(f"{m.role}: {m.text}" for m in flat[-RECENT_MESSAGES:])
        memories = await extract_all_typed(self._completer, text)

        dedup = self._state.dedup
        batch: set[str] = set()
        scheduled = skipped = 0
        for memory in memories:
            content, info = memory_record(memory)
            key = compute_content_hash(content, memory.type)
            if key in batch or dedup.is_duplicate(content, memory.type):
                skipped += 1
                continue
            batch.add(key)
            self._store.add_detached(
                content, memory.tags, info, on_stored=self._stored_callback(content, memory.type)
            )
            scheduled += 1

        stats.dedup_skips += skipped
        if scheduled or skipped:
            logger.info(
                "Typed memories: %d scheduled, %d skipped (duplicates)", scheduled, skipped
            )

    def _stored_callback(self, content: str, memory_type: str) -> Callable[[], None]:
        def stored() -> None:
            self._state.dedup.mark_added(content, memory_type)
            stats = self._state.stats.extraction
            stats.memories_saved += 1
            stats.by_type[memory_type] += 1

        return stored
