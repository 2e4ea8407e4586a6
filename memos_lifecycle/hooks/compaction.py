"""before_compaction / after_compaction: flush the conversation to MemOS.

Before the host compresses its context window, the conversation is
segmented, each segment summarized into self-contained entries, and the
entries persisted concurrently. One ``compaction_summary`` record carrying
the tally follows. After compaction, the next turns run in enriched
post-compaction retrieval mode.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from memos_lifecycle.dedup import compute_content_hash
from memos_lifecycle.segmentation import segment_conversation
from memos_lifecycle.summarize import (
    COMPACTION_TAG,
    SummaryEntry,
    flatten_messages,
    message_text,
    summarize_conversation,
)

if TYPE_CHECKING:
    from memos_lifecycle.health import HealthProbe
    from memos_lifecycle.llm import Completer
    from memos_lifecycle.state import PluginState
    from memos_lifecycle.store import MemoryStore

logger = logging.getLogger(__name__)

MIN_MESSAGES = 4


def estimate_tokens(messages: Any) -> int:
    """Rough token count: characters / 4, rounded up."""
    if not isinstance(messages, list):
        return 0
    chars = sum(len(message_text(m)) for m in messages)
    return -(-chars // 4)


def _event_messages(event: Any) -> list | None:
    if not isinstance(event, dict):
        return None
    messages = event.get("messages")
    if messages is None and isinstance(event.get("session"), dict):
        messages = event["session"].get("messages")
    return messages if isinstance(messages, list) else None


class CompactionFlush:
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

    # -- Hooks ---------------------------------------------------------------

    async def before(self, event: dict[str, Any], ctx: Any = None) -> None:
        try:
            await self.flush(_event_messages(event))
        except Exception:
            logger.exception("Compaction flush failed")

    async def after(self, event: Any = None, ctx: Any = None) -> None:
        self._state.mark_compacted()
        logger.info(
            "Compaction #%d completed. Next turn uses enriched context.",
            self._state.compaction_count,
        )

    # -- Flush ---------------------------------------------------------------

    async def flush(self, messages: list | None) -> None:
        token_estimate = estimate_tokens(messages)
        logger.info(
            "before_compaction fired (%d msgs, ~%d tokens)", len(messages or []), token_estimate
        )
        if not messages or len(messages) < MIN_MESSAGES:
            logger.info("Too few messages to summarize, skipping")
            return

        if not await self._health.is_healthy():
            logger.error("MemOS unhealthy during compaction flush, memories may be lost")
            return

        loop = asyncio.get_running_loop()
        t0 = loop.time()
        segments = segment_conversation(flatten_messages(messages))
        logger.info("Summarizing conversation for compaction flush (%d segments)", len(segments))

        entries: list[SummaryEntry] = []
        for segment in segments:
            entries.extend(await summarize_conversation(self._completer, segment))
        if not entries:
            logger.info("No entries to persist")
            return

        saved, skipped, failed = await self._persist(entries)

        state = self._state
        state.compaction_count += 1
        self._store.add_detached(
            f"Compaction #{state.compaction_count}: {saved} entries saved "
            f"from {len(messages)} messages",
            [COMPACTION_TAG],
            {
                "_type": COMPACTION_TAG,
                "compaction_number": state.compaction_count,
                "entries_saved": saved,
                "entries_failed": failed,
                "entries_skipped": skipped,
                "message_count": len(messages),
                "token_estimate": token_estimate,
                "ts": datetime.now(UTC).isoformat(),
            },
        )

        stats = state.stats.compaction
        stats.record(loop.time() - t0)
        stats.entries_saved += saved
        stats.entries_skipped += skipped
        stats.entries_failed += failed
        logger.info(
            "Compaction flush: %d saved, %d skipped, %d failed (#%d)",
            saved,
            skipped,
            failed,
            state.compaction_count,
        )

    async def _persist(self, entries: list[SummaryEntry]) -> tuple[int, int, int]:
        """Write entries concurrently; returns (saved, skipped, failed)."""
        dedup = self._state.dedup
        to_save: list[SummaryEntry] = []
        batch: set[str] = set()
        skipped = 0
        for entry in entries:
            key = compute_content_hash(entry.content)
            if key in batch or dedup.is_duplicate(entry.content):
                skipped += 1
                continue
            batch.add(key)
            to_save.append(entry)

        results = await asyncio.gather(
            *(self._store.add(e.content, e.tags) for e in to_save),
            return_exceptions=True,
        )
        saved = failed = 0
        for entry, result in zip(to_save, results, strict=True):
            if isinstance(result, BaseException):
                failed += 1
                logger.warning("Failed to save compaction entry: %s", result)
                continue
            dedup.mark_added(entry.content)
            saved += 1
        return saved, skipped, failed
