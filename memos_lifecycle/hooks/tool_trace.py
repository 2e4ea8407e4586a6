"""tool_result_persist: tool execution traces and skill learning."""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from memos_lifecycle.extraction import ToolExecution, extract_skill_from_tool
from memos_lifecycle.utils import truncate

if TYPE_CHECKING:
    from memos_lifecycle.health import HealthProbe
    from memos_lifecycle.llm import Completer
    from memos_lifecycle.state import PluginState
    from memos_lifecycle.store import MemoryStore

logger = logging.getLogger(__name__)

# The memory system's own tools; tracing them would recurse.
SKIP_PREFIXES = ("memos", "memory")
SKILL_MIN_DURATION_MS = 500


def _lookup(event: dict[str, Any], ctx: Any, key: str) -> Any:
    if event.get(key) is not None:
        return event[key]
    return ctx.get(key) if isinstance(ctx, dict) else None


def duration_ms(event: dict[str, Any], ctx: Any = None) -> int:
    """Explicit ``durationMs``, else elapsed since ``startTime`` (epoch ms), else 0."""
    explicit = _lookup(event, ctx, "durationMs")
    if isinstance(explicit, int | float):
        return int(explicit)
    start = _lookup(event, ctx, "startTime")
    if isinstance(start, int | float):
        return max(0, int(time.time() * 1000 - start))
    return 0


class ToolTraceHook:
    def __init__(
        self,
        state: PluginState,
        store: MemoryStore,
        health: HealthProbe,
        completer: Completer | None = None,
    ) -> None:
        self._state = state
        self._store = store
        self._health = health
        self._completer = completer

    async def __call__(self, event: dict[str, Any], ctx: Any = None) -> None:
        try:
            await self.run(event or {}, ctx)
        except Exception:
            logger.exception("Tool trace failed")

    async def run(self, event: dict[str, Any], ctx: Any = None) -> None:
        tool_name = _lookup(event, ctx, "toolName")
        if not tool_name or str(tool_name).startswith(SKIP_PREFIXES):
            return
        if not await self._health.is_healthy():
            return

        elapsed = duration_ms(event, ctx)
        success = not event.get("error") and bool(event.get("message"))
        trace = {
            "type": "tool_trace",
            "tool": tool_name,
            "result": truncate(event.get("message"), 300),
            "success": success,
            "durationMs": elapsed,
            "ts": datetime.now(UTC).isoformat(),
        }
        self._store.add_detached(
            json.dumps(trace, ensure_ascii=False),
            ["tool_trace", tool_name],
            {"_type": "tool_trace"},
        )
        self._state.stats.tool_trace.count += 1

        if (
            self._completer is None
            or not success
            or elapsed <= SKILL_MIN_DURATION_MS
            or not self._state.skill_extraction_due(tool_name)
        ):
            return

        execution = ToolExecution(
            name=tool_name,
            params=_lookup(event, ctx, "params") or {},
            result=truncate(event.get("message"), 500),
            success=True,
            duration_ms=elapsed,
        )
        try:
            skill = await extract_skill_from_tool(self._completer, execution)
        except Exception as exc:
            logger.warning("Skill extraction from %s failed: %s", tool_name, exc)
            return
        if skill is None:
            return

        logger.info("Extracted skill from %s", tool_name)
        self._store.add_detached(skill.content, skill.tags, {"_type": "skill", "tool": tool_name})
        self._state.mark_skill_extracted(tool_name)
        self._state.stats.tool_trace.skills_extracted += 1
