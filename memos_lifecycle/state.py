"""Process-wide state shared by the lifecycle hooks.

One instance is built per registered plugin and handed to every hook, so
tests get isolated state by constructing their own.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from memos_lifecycle.dedup import DedupCache
from memos_lifecycle.stats import Stats

POST_COMPACTION_WINDOW = 120.0
EXTRACTION_THROTTLE = 300.0
TODO_REMIND_COOLDOWN = 1800.0
SKILL_COOLDOWN = 600.0
SKILL_SWEEP_THRESHOLD = 100


@dataclass
class PluginState:
    clock: Callable[[], float] = time.monotonic
    post_compaction_window: float = POST_COMPACTION_WINDOW
    extraction_throttle: float = EXTRACTION_THROTTLE
    todo_remind_cooldown: float = TODO_REMIND_COOLDOWN
    skill_cooldown: float = SKILL_COOLDOWN

    compaction_count: int = 0
    last_compaction_time: float | None = None
    last_extraction_time: float | None = None
    last_todo_remind_time: float | None = None
    skill_extracted_at: dict[str, float] = field(default_factory=dict)

    stats: Stats = field(default_factory=Stats)
    dedup: DedupCache = field(init=False)

    def __post_init__(self) -> None:
        self.dedup = DedupCache(clock=self.clock)

    # -- Post-compaction mode ------------------------------------------------

    def mark_compacted(self) -> None:
        self.last_compaction_time = self.clock()

    def is_post_compaction(self) -> bool:
        if self.last_compaction_time is None:
            return False
        return self.clock() - self.last_compaction_time < self.post_compaction_window

    # -- Throttles -----------------------------------------------------------

    def try_start_extraction(self) -> bool:
        """Claim the extraction slot if the throttle window has passed."""
        now = self.clock()
        if (
            self.last_extraction_time is not None
            and now - self.last_extraction_time < self.extraction_throttle
        ):
            return False
        self.last_extraction_time = now
        return True

    def todo_remind_due(self) -> bool:
        if self.last_todo_remind_time is None:
            return True
        return self.clock() - self.last_todo_remind_time > self.todo_remind_cooldown

    def mark_todo_reminded(self) -> None:
        self.last_todo_remind_time = self.clock()

    def skill_extraction_due(self, tool_name: str) -> bool:
        last = self.skill_extracted_at.get(tool_name)
        return last is None or self.clock() - last > self.skill_cooldown

    def mark_skill_extracted(self, tool_name: str) -> None:
        now = self.clock()
        self.skill_extracted_at[tool_name] = now
        if len(self.skill_extracted_at) > SKILL_SWEEP_THRESHOLD:
            cutoff = now - self.skill_cooldown
            for name in [n for n, ts in self.skill_extracted_at.items() if ts < cutoff]:
                del self.skill_extracted_at[name]
