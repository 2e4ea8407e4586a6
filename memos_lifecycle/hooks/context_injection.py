"""before_agent_start: smart retrieval and todo auto-remind.

Pipeline: pre-retrieval decision, health gate, query rewrite, search,
optional rerank, sufficiency filter, then format. Right after a compaction
the decision is always ``force`` and the search is widened with
compaction summaries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from memos_lifecycle.formatting import (
    format_context_block,
    format_pref_block,
    format_skill_block,
    format_task_list,
    join_blocks,
)
from memos_lifecycle.models import SearchResult
from memos_lifecycle.reranker import rerank
from memos_lifecycle.retrieval import (
    DEFAULT_CLASSIFIER,
    PatternClassifier,
    RetrievalDecision,
    filter_by_sufficiency,
    merge_unique,
    pre_retrieval_decision,
    rewrite_query,
)

if TYPE_CHECKING:
    from memos_lifecycle.health import HealthProbe
    from memos_lifecycle.llm import Completer
    from memos_lifecycle.state import PluginState
    from memos_lifecycle.store import MemoryStore
    from memos_lifecycle.tasks import TaskManager

logger = logging.getLogger(__name__)

MIN_PROMPT_CHARS = 5
TOP_K_FORCE = 14
TOP_K_RETRIEVE = 12
POST_COMPACTION_TOP_K = 8
SUMMARY_QUERY = "compaction summary decisions progress pending tasks"
POST_COMPACTION_HEADER = "Context restored from MemOS after compaction:"
MAX_OVERLAP = 0.65


class ContextInjector:
    """Builds the ``<user_memory_context>`` block prepended to each turn.

    Args:
        state: Shared plugin state (post-compaction mode, todo cooldown).
        store: Memory search.
        health: Liveness gate checked before any search.
        tasks: Source of pending tasks for the reminder, or None to disable.
        reranker: Completer used for LLM reranking, or None to disable.
    """

    def __init__(
        self,
        state: PluginState,
        store: MemoryStore,
        health: HealthProbe,
        tasks: TaskManager | None = None,
        reranker: Completer | None = None,
        classifier: PatternClassifier = DEFAULT_CLASSIFIER,
    ) -> None:
        self._state = state
        self._store = store
        self._health = health
        self._tasks = tasks
        self._reranker = reranker
        self._classifier = classifier

    async def __call__(self, event: dict[str, Any], ctx: Any = None) -> dict[str, str] | None:
        return await self.run(event.get("prompt") if isinstance(event, dict) else None)

    async def run(self, prompt: str | None) -> dict[str, str] | None:
        """Return ``{"prependContext": ...}`` or None when there is nothing to add."""
        try:
            return await self._run(prompt)
        except Exception:
            logger.exception("Context injection failed")
            return None

    async def _run(self, prompt: Any) -> dict[str, str] | None:
        if not isinstance(prompt, str) or len(prompt) < MIN_PROMPT_CHARS:
            return None

        stats = self._state.stats.injection
        post_compaction = self._state.is_post_compaction()
        decision = (
            RetrievalDecision.FORCE
            if post_compaction
            else pre_retrieval_decision(prompt, self._classifier)
        )
        stats.record_decision(decision)

        if decision == RetrievalDecision.SKIP:
            logger.debug("Pre-retrieval: skipping (casual/greeting)")
            return None

        if not await self._health.is_healthy():
            logger.warning("MemOS unhealthy, skipping context injection")
            return None

        return await self._inject(prompt, decision, post_compaction)

    async def _inject(
        self,
        prompt: str,
        decision: RetrievalDecision,
        post_compaction: bool,
    ) -> dict[str, str] | None:
        if post_compaction:
            logger.info("Post-compaction mode: fetching enriched context")
            query = rewrite_query(prompt, post_compaction=True)
            summaries, relevant = await asyncio.gather(
                self._search_quietly(
                    SUMMARY_QUERY, POST_COMPACTION_TOP_K, {"_type": "compaction_summary"}
                ),
                self._search_quietly(query, POST_COMPACTION_TOP_K),
            )
            memories = merge_unique(summaries.text, relevant.text)
            skills = merge_unique(summaries.skills, relevant.skills)
            prefs = merge_unique(summaries.preferences, relevant.preferences)
        else:
            query = rewrite_query(prompt)
            top_k = TOP_K_FORCE if decision == RetrievalDecision.FORCE else TOP_K_RETRIEVE
            result = await self._search_quietly(query, top_k)
            memories, skills, prefs = result.text, result.skills, result.preferences

        if self._reranker is not None:
            memories = await rerank(self._reranker, query, memories, stats=self._state.stats)
        memories = filter_by_sufficiency(memories, min_length=20, max_overlap=MAX_OVERLAP)

        if post_compaction:
            context_block = format_context_block(
                memories, max_items=12, max_chars=800, header=POST_COMPACTION_HEADER
            )
        else:
            context_block = format_context_block(memories, max_items=8, max_chars=500)

        todo_block = await self._todo_reminder()
        body = join_blocks(
            [context_block, format_skill_block(skills), format_pref_block(prefs), todo_block]
        )
        if not body:
            logger.debug("No relevant memories after filtering")
            return None

        stats = self._state.stats.injection
        stats.memories_injected += len(memories)
        if post_compaction:
            stats.post_compaction += 1
        logger.info(
            "Injecting %d memories (%s, decision=%s)%s",
            len(memories),
            "post-compaction" if post_compaction else "normal",
            decision,
            " + todo reminder" if todo_block else "",
        )
        return {"prependContext": f"<user_memory_context>\n{body}\n</user_memory_context>"}

    async def _search_quietly(
        self,
        query: str,
        top_k: int,
        filter: dict[str, Any] | None = None,
    ) -> SearchResult:
        try:
            return await self._store.search(query, top_k, filter=filter)
        except Exception as exc:
            logger.warning("Memory search failed, continuing without results: %s", exc)
            return SearchResult()

    async def _todo_reminder(self) -> str:
        if self._tasks is None or not self._state.todo_remind_due():
            return ""
        pending = await self._tasks.find_tasks(status="pending")
        if not pending:
            # Cooldown stays open so the next turn retries.
            return ""
        self._state.mark_todo_reminded()
        logger.info("Todo auto-remind: %d pending tasks", len(pending))
        return format_task_list(pending)
