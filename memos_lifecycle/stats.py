"""In-memory operation counters. Reset on process restart."""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field


@dataclass
class Timed:
    count: int = 0
    total_seconds: float = 0.0
    errors: int = 0

    def record(self, seconds: float) -> None:
        self.count += 1
        self.total_seconds += seconds

    def average(self) -> str:
        if not self.count:
            return "0ms"
        avg = self.total_seconds / self.count
        return f"{avg:.1f}s" if avg >= 1 else f"{round(avg * 1000)}ms"


@dataclass
class RerankStats(Timed):
    kept: int = 0
    total: int = 0


@dataclass
class InjectionStats:
    count: int = 0
    skip: int = 0
    retrieve: int = 0
    force: int = 0
    post_compaction: int = 0
    memories_injected: int = 0

    def record_decision(self, decision: str) -> None:
        self.count += 1
        setattr(self, decision, getattr(self, decision) + 1)


@dataclass
class ExtractionStats:
    count: int = 0
    throttled: int = 0
    dedup_skips: int = 0
    memories_saved: int = 0
    by_type: Counter = field(default_factory=Counter)


@dataclass
class CompactionStats(Timed):
    entries_saved: int = 0
    entries_skipped: int = 0
    entries_failed: int = 0


@dataclass
class ToolTraceStats:
    count: int = 0
    skills_extracted: int = 0


@dataclass
class TaskSyncStats:
    created: int = 0
    completed: int = 0
    errors: int = 0


@dataclass
class Stats:
    started_at: float = field(default_factory=time.monotonic)
    search: Timed = field(default_factory=Timed)
    rerank: RerankStats = field(default_factory=RerankStats)
    injection: InjectionStats = field(default_factory=InjectionStats)
    extraction: ExtractionStats = field(default_factory=ExtractionStats)
    compaction: CompactionStats = field(default_factory=CompactionStats)
    tool_trace: ToolTraceStats = field(default_factory=ToolTraceStats)
    task_sync: TaskSyncStats = field(default_factory=TaskSyncStats)

    def format(self) -> str:
        """Human-readable multi-line summary."""
        s, r, inj = self.search, self.rerank, self.injection
        ext, c, tt = self.extraction, self.compaction, self.tool_trace
        kept_pct = f"{round(r.kept / r.total * 100)}%" if r.total else "0%"
        by_type = ", ".join(f"{k}:{v}" for k, v in sorted(ext.by_type.items())) or "none"

        lines = [
            f"Plugin uptime: {_format_duration(time.monotonic() - self.started_at)}",
            f"Search: {s.count} calls, avg {s.average()}, {s.errors} errors",
            (
                f"Rerank: {r.count} calls, avg {r.average()}, {r.errors} errors, "
                f"kept {r.kept}/{r.total} ({kept_pct})"
            ),
            (
                f"Injection: {inj.count} total ({inj.retrieve} retrieve, {inj.skip} skip, "
                f"{inj.force} force), {inj.post_compaction} post-compaction, "
                f"{inj.memories_injected} memories"
            ),
            (
                f"Extraction: {ext.count} runs ({ext.throttled} throttled), "
                f"{ext.memories_saved} saved, {ext.dedup_skips} dedup skips [{by_type}]"
            ),
            (
                f"Compaction: {c.count} runs, avg {c.average()}, {c.entries_saved} saved / "
                f"{c.entries_skipped} skipped / {c.entries_failed} failed"
            ),
            f"Tool traces: {tt.count} captured, {tt.skills_extracted} skills extracted",
        ]
        ts = self.task_sync
        if ts.created or ts.errors:
            lines.append(
                f"TickTick: {ts.created} created, {ts.completed} completed, {ts.errors} errors"
            )
        return "\n".join(lines)


def _format_duration(seconds: float) -> str:
    total = int(seconds)
    hours, minutes = total // 3600, (total % 3600) // 60
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m"
    return f"{total}s"
