"""LLM relevance reranking of retrieved memories.

Strictly additive: on any failure the caller gets the original list back.
A well-formed empty answer (``[]``) is respected and filters everything.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from memos_lifecycle.client import Timeouts
from memos_lifecycle.utils import parse_json, truncate

if TYPE_CHECKING:
    from memos_lifecycle.llm import Completer
    from memos_lifecycle.models import MemoryItem
    from memos_lifecycle.stats import Stats

logger = logging.getLogger(__name__)

MAX_SNIPPET_CHARS = 300
MIN_MEMORIES_TO_RERANK = 3

RERANK_PROMPT = """You are a relevance judge. Given a user query and memory snippets from a \
personal knowledge base, return ONLY the indices of memories that are relevant to the query.

RELEVANT = directly relates to the query topic, contains useful info
NOT RELEVANT = different topic, only shares a keyword, generic/unrelated

Query: "{query}"

Memories:
{snippets}

Return a JSON array of relevant indices. Example: [0, 2, 5]
If none are relevant, return: []"""


def build_rerank_prompt(query: str, items: Sequence[MemoryItem]) -> str:
    snippets = "\n".join(
        f"[{i}] {truncate(item.content, MAX_SNIPPET_CHARS)}" for i, item in enumerate(items)
    )
    return RERANK_PROMPT.format(query=query, snippets=snippets)


def valid_indices(raw: list, size: int) -> list[int]:
    """Keep in-range integer indices (numeric strings allowed), first occurrence only."""
    seen: set[int] = set()
    indices: list[int] = []
    for value in raw:
        if isinstance(value, bool):
            continue
        if isinstance(value, str):
            try:
                value = int(value.strip())
            except ValueError:
                continue
        elif isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, int) and 0 <= value < size and value not in seen:
            seen.add(value)
            indices.append(value)
    return indices


async def rerank(
    completer: Completer,
    query: str,
    items: list[MemoryItem],
    *,
    min_items: int = MIN_MEMORIES_TO_RERANK,
    stats: Stats | None = None,
) -> list[MemoryItem]:
    """Return the subset of ``items`` the model judges relevant, in model order."""
    if not items or len(items) < min_items:
        return items or []

    loop = asyncio.get_running_loop()
    t0 = loop.time()
    try:
        text = await completer.complete(
            build_rerank_prompt(query, items),
            timeout=Timeouts.RERANK,
            max_tokens=50,
            temperature=0,
        )
        parsed = parse_json(text, "reranker")
        if not isinstance(parsed, list):
            logger.warning("Reranker: could not parse index array, using all memories")
            if stats:
                stats.rerank.errors += 1
            return items

        indices = valid_indices(parsed, len(items))
        if parsed and not indices:
            # Non-empty answer with nothing usable: malformed, not "none relevant".
            logger.warning("Reranker: no valid indices in %r, using all memories", parsed[:10])
            if stats:
                stats.rerank.errors += 1
            return items

        kept = [items[i] for i in indices]
        if stats:
            stats.rerank.kept += len(kept)
            stats.rerank.total += len(items)
        logger.info("Reranker: %d/%d memories relevant", len(kept), len(items))
        return kept
    except Exception as exc:
        logger.warning("Reranker failed (using unfiltered): %s", exc)
        if stats:
            stats.rerank.errors += 1
        return items
    finally:
        if stats:
            stats.rerank.record(loop.time() - t0)
