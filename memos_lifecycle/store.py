"""Read and write paths for MemOS memories.

``search`` and ``add`` raise :class:`~memos_lifecycle.client.TransportError`
so callers can decide how to degrade. ``add_detached`` is the
fire-and-forget variant used for low-priority writes: it never raises and
never blocks the calling hook.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from memos_lifecycle.client import Timeouts
from memos_lifecycle.dedup import compute_content_hash
from memos_lifecycle.models import MemoryItem, SearchResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from memos_lifecycle.client import MemosClient
    from memos_lifecycle.stats import Stats

logger = logging.getLogger(__name__)

SKILL_TOP_K = 3


class MemoryStore:
    """MemOS memory access for one user and cube."""

    def __init__(self, client: MemosClient, stats: Stats | None = None) -> None:
        self._client = client
        self._stats = stats
        self._pending: set[asyncio.Task] = set()

    # -- Read ----------------------------------------------------------------

    async def search(
        self,
        query: str,
        top_k: int = 5,
        *,
        filter: dict[str, Any] | None = None,
        timeout: float = Timeouts.SEARCH,
    ) -> SearchResult:
        """Semantic search across text, skill, and preference memories.

        Args:
            query: Natural-language search query.
            top_k: Max text memories to return.
            filter: Optional structural filter on ``info`` (e.g.
                ``{"_type": "task"}``).
            timeout: Per-attempt timeout in seconds.
        """
        body: dict[str, Any] = {
            "query": query,
            "user_id": self._client.user_id,
            "readable_cube_ids": [self._client.cube_id],
            "top_k": top_k,
            "include_skill_memory": True,
            "skill_mem_top_k": SKILL_TOP_K,
            "include_preference": True,
            "dedup": "mmr",
        }
        if filter:
            body["filter"] = filter

        loop = asyncio.get_running_loop()
        t0 = loop.time()
        try:
            raw = await self._client.call("/product/search", body, timeout=timeout)
        except Exception:
            if self._stats:
                self._stats.search.errors += 1
            raise
        finally:
            if self._stats:
                self._stats.search.record(loop.time() - t0)
        return self._normalize(raw)

    async def search_text(
        self,
        query: str,
        top_k: int = 5,
        *,
        filter: dict[str, Any] | None = None,
        timeout: float = Timeouts.SEARCH,
    ) -> list[MemoryItem]:
        """Search and return only the free-text channel."""
        result = await self.search(query, top_k, filter=filter, timeout=timeout)
        return result.text

    # -- Write ---------------------------------------------------------------

    async def add(
        self,
        content: str,
        tags: list[str] | None = None,
        info: dict[str, Any] | None = None,
    ) -> None:
        """Persist a memory and wait for MemOS to confirm.

        A ``content_hash`` is added to ``info`` unless the caller set one.
        """
        merged_info = {
            "content_hash": compute_content_hash(content, (info or {}).get("_type", "memory")),
            **(info or {}),
        }
        await self._client.call(
            "/product/add",
            {
                "user_id": self._client.user_id,
                "mem_cube_id": self._client.cube_id,
                "messages": content,
                "custom_tags": list(tags or []),
                "info": merged_info,
            },
            retries=3,
            timeout=Timeouts.ADD,
        )
        logger.debug("Stored memory: %s", content[:80])

    def add_detached(
        self,
        content: str,
        tags: list[str] | None = None,
        info: dict[str, Any] | None = None,
        *,
        on_stored: Callable[[], None] | None = None,
    ) -> asyncio.Task:
        """Fire-and-forget :meth:`add`. Failures are logged, never raised.

        ``on_stored`` runs only once MemOS has confirmed the write.
        """
        task = asyncio.create_task(self._add_quietly(content, tags, info, on_stored))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _add_quietly(
        self,
        content: str,
        tags: list[str] | None,
        info: dict[str, Any] | None,
        on_stored: Callable[[], None] | None = None,
    ) -> None:
        try:
            await self.add(content, tags, info)
        except Exception as exc:
            logger.warning("add_detached failed: %s", exc)
            return
        if on_stored is not None:
            on_stored()

    async def drain(self) -> None:
        """Wait for all outstanding detached writes."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # -- Helpers -------------------------------------------------------------

    @staticmethod
    def _normalize(raw: Any) -> SearchResult:
        """Pull the three channels out of a ``/product/search`` response."""
        data = raw.get("data") if isinstance(raw, dict) else None
        if not isinstance(data, dict):
            return SearchResult()

        def channel(key: str) -> list[MemoryItem]:
            buckets = data.get(key) or []
            if not isinstance(buckets, list) or not buckets:
                return []
            first = buckets[0] if isinstance(buckets[0], dict) else {}
            return [MemoryItem.from_api(m) for m in first.get("memories") or []]

        return SearchResult(
            text=channel("text_mem"),
            skills=channel("skill_mem"),
            preferences=channel("pref_mem"),
        )
