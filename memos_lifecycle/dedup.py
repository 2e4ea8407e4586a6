"""Content-hash deduplication with a sliding time window."""

from __future__ import annotations

import hashlib
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

DEDUP_WINDOW_SECONDS = 300.0
MAX_ENTRIES_BEFORE_SWEEP = 500
MIN_DEDUP_LENGTH = 20

_WHITESPACE = re.compile(r"\s+")


def compute_content_hash(content: str, memory_type: str = "memory") -> str:
    """SHA-256 of ``type:normalized_content``, truncated to 16 hex chars."""
    normalized = _WHITESPACE.sub(" ", content.lower()).strip()
    return hashlib.sha256(f"{memory_type}:{normalized}".encode()).hexdigest()[:16]


@dataclass
class _Entry:
    count: int
    last_seen: float


class DedupCache:
    """Best-effort, same-process memory of recently written items.

    Texts shorter than ``MIN_DEDUP_LENGTH`` are never tracked. A hit
    refreshes the entry's timestamp, so repeated duplicates keep the window
    open.
    """

    def __init__(
        self,
        window: float = DEDUP_WINDOW_SECONDS,
        max_entries: int = MAX_ENTRIES_BEFORE_SWEEP,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def is_duplicate(self, text: str, memory_type: str = "memory") -> bool:
        if not text or len(text) < MIN_DEDUP_LENGTH:
            return False
        entry = self._entries.get(compute_content_hash(text, memory_type))
        now = self._clock()
        if entry is not None and now - entry.last_seen < self._window:
            entry.count += 1
            entry.last_seen = now
            return True
        return False

    def mark_added(self, text: str, memory_type: str = "memory") -> None:
        if not text or len(text) < MIN_DEDUP_LENGTH:
            return
        now = self._clock()
        self._entries[compute_content_hash(text, memory_type)] = _Entry(count=1, last_seen=now)
        if len(self._entries) > self._max_entries:
            self._sweep(now)

    def _sweep(self, now: float) -> None:
        cutoff = now - self._window
        stale = [key for key, entry in self._entries.items() if entry.last_seen < cutoff]
        for key in stale:
            del self._entries[key]
