"""Smart retrieval helpers.

1. Pre-retrieval decision: skip greetings and acknowledgements, force a
   richer fetch on explicit memory references.
2. Query rewriting: a clean, truncated prompt for semantic search.
3. Sufficiency filtering: drop short, meta, and near-duplicate results.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from memos_lifecycle.models import MemoryItem

MIN_PROMPT_CHARS = 8
SHORT_PROMPT_CHARS = 15
FEW_WORDS_PROMPT_CHARS = 30
FEW_WORDS = 3
QUERY_MAX_CHARS = 300
COMPARE_PREFIX_CHARS = 200
POST_COMPACTION_KEYWORDS = "decisions progress pending tasks"

_WHITESPACE = re.compile(r"\s+")


class RetrievalDecision(StrEnum):
    SKIP = "skip"
    RETRIEVE = "retrieve"
    FORCE = "force"


@dataclass(frozen=True)
class LocalePatterns:
    """Substring patterns for one language. Matched against the lowercased prompt."""

    casual: tuple[str, ...]
    force: tuple[str, ...]


ENGLISH = LocalePatterns(
    casual=(
        "hello", "hi ", "hey", "good morning", "good evening", "good night",
        "thanks", "thank you", "ok", "okay", "bye", "goodbye",
        "how are you", "what's up", "sure", "got it", "understood",
        "yes", "no", "agree", "cool", "nice", "great",
    ),
    force=(
        "remember", "recall", "you said", "we discussed", "last time",
        "previously", "my preference", "what did", "when did",
        "you told me", "as before", "like last",
    ),
)

RUSSIAN = LocalePatterns(
    casual=(
        "привет", "здравствуй", "добр", "спасибо", "благодар",
        "пока", "хорошо", "ладно", "окей", "ок ", "да ", "нет ",
        "понял", "ясно", "круто", "отлично", "супер", "угу",
    ),
    force=(
        "помнишь", "вспомни", "ты говорил", "мы обсуждали", "в прошлый",
        "ранее", "как раньше", "моё предпочт", "что ты", "когда мы",
        "как обычно", "как всегда",
    ),
)


class PatternClassifier:
    """Keyword classifier over any number of locales."""

    def __init__(self, locales: Iterable[LocalePatterns] = (ENGLISH, RUSSIAN)) -> None:
        self._casual = tuple(p for loc in locales for p in loc.casual)
        self._force = tuple(p for loc in locales for p in loc.force)

    def is_casual(self, lowered: str) -> bool:
        return any(p in lowered for p in self._casual)

    def is_memory_reference(self, lowered: str) -> bool:
        return any(p in lowered for p in self._force)


DEFAULT_CLASSIFIER = PatternClassifier()


def pre_retrieval_decision(
    prompt: str | None,
    classifier: PatternClassifier = DEFAULT_CLASSIFIER,
) -> RetrievalDecision:
    """Decide whether a prompt is worth a memory search.

    Explicit memory references always win over the casual check. Casual
    patterns only skip when the prompt is short (under 15 chars) or has at
    most three words and is under 30 chars.
    """
    if not prompt or len(prompt) < MIN_PROMPT_CHARS:
        return RetrievalDecision.SKIP

    lowered = prompt.lower().strip()
    if classifier.is_memory_reference(lowered):
        return RetrievalDecision.FORCE

    short = len(lowered) < SHORT_PROMPT_CHARS
    few_words = len(lowered) < FEW_WORDS_PROMPT_CHARS and len(lowered.split()) <= FEW_WORDS
    if (short or few_words) and classifier.is_casual(lowered):
        return RetrievalDecision.SKIP

    return RetrievalDecision.RETRIEVE


def rewrite_query(prompt: str, post_compaction: bool = False) -> str:
    """Build the search query: first 300 chars, whitespace collapsed.

    Server-side hybrid search handles keyword expansion. After compaction,
    continuity keywords are prepended to pull in progress and open tasks.
    """
    core = _WHITESPACE.sub(" ", prompt[:QUERY_MAX_CHARS]).strip()
    if post_compaction:
        return f"{POST_COMPACTION_KEYWORDS} {core}"
    return core


def filter_by_sufficiency(
    items: Sequence[MemoryItem] | None,
    min_length: int = 20,
    max_overlap: float = 0.7,
) -> list[MemoryItem]:
    """Drop short, meta-record, and near-duplicate memories, keeping order."""
    if not items:
        return []

    accepted: list[MemoryItem] = []
    seen: list[set[str]] = []
    for item in items:
        content = item.content
        if not content or len(content) < min_length:
            continue
        if looks_like_meta_record(content):
            continue

        words = set(content.lower()[:COMPARE_PREFIX_CHARS].split())
        if any(overlap_ratio(words, prior) > max_overlap for prior in seen):
            continue

        seen.append(words)
        accepted.append(item)
    return accepted


def looks_like_meta_record(content: str) -> bool:
    """Serialized internal records (tool traces etc.) that leaked into search."""
    return content.startswith("{") and '"type"' in content


def overlap_ratio(a: set[str], b: set[str]) -> float:
    """Jaccard similarity of two word sets."""
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def merge_unique(*groups: Iterable[MemoryItem], key_chars: int = 100) -> list[MemoryItem]:
    """Concatenate groups, dropping items whose content prefix was already seen."""
    merged: list[MemoryItem] = []
    seen: set[str] = set()
    for group in groups:
        for item in group:
            key = item.content[:key_chars]
            if key and key not in seen:
                seen.add(key)
                merged.append(item)
    return merged
