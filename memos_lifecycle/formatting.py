"""Render retrieved memories and tasks into bounded text blocks for injection."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from memos_lifecycle.utils import truncate

if TYPE_CHECKING:
    from memos_lifecycle.models import MemoryItem
    from memos_lifecycle.tasks import TaskView

DEFAULT_HEADER = "Relevant memories from MemOS:"
MAX_TASKS_SHOWN = 8

PRIORITY_MARKERS = {"P0": "\U0001f534", "P1": "\U0001f7e0"}
DEFAULT_PRIORITY_MARKER = "\U0001f7e1"


def format_recency(item: MemoryItem, now: datetime | None = None) -> str:
    """``[<1h ago]``, ``[5h ago]``, ``[3d ago]``, or ``[Jan 15]`` past two weeks."""
    stamp = item.updated_at or item.created_at
    if not stamp:
        return ""
    try:
        when = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
    except ValueError:
        return ""
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)

    hours = int(((now or datetime.now(UTC)) - when).total_seconds() // 3600)
    if hours < 1:
        return "[<1h ago]"
    if hours < 24:
        return f"[{hours}h ago]"
    days = hours // 24
    if days < 14:
        return f"[{days}d ago]"
    return f"[{when.strftime('%b')} {when.day}]"


def format_context_block(
    items: Sequence[MemoryItem],
    *,
    max_items: int = 10,
    max_chars: int = 500,
    budget: int = 3000,
    header: str = DEFAULT_HEADER,
    now: datetime | None = None,
) -> str:
    """Bullet list of memories, sharing a character budget across items.

    Returns an empty string when there is nothing to inject.
    """
    if not items:
        return ""

    shown = list(items[:max_items])
    per_item = min(max_chars, budget // max(len(shown), 1))

    lines = [header]
    for item in shown:
        if not item.content:
            continue
        recency = format_recency(item, now)
        tags = f" [{', '.join(item.tags)}]" if item.tags else ""
        prefix = f"{recency} " if recency else ""
        lines.append(f"- {prefix}{truncate(item.content, per_item)}{tags}")
    return "\n".join(lines) if len(lines) > 1 else ""


def format_skill_block(items: Sequence[MemoryItem], *, max_items: int = 3) -> str:
    if not items:
        return ""
    lines = ["Relevant skills from MemOS:"]
    for item in items[:max_items]:
        entry = f"- [Skill: {item.skill_name}] {item.skill_description}"
        if item.skill_procedure:
            entry += f"\n  Procedure: {truncate(item.skill_procedure, 300)}"
        lines.append(entry)
    return "\n".join(lines) if len(lines) > 1 else ""


def format_pref_block(
    items: Sequence[MemoryItem],
    *,
    max_items: int = 3,
    max_chars: int = 300,
) -> str:
    if not items:
        return ""
    lines = ["User preferences from MemOS:"]
    for item in items[:max_items]:
        if item.content:
            lines.append(f"- [Preference] {truncate(item.content, max_chars)}")
    return "\n".join(lines) if len(lines) > 1 else ""


def format_task_list(tasks: Sequence[TaskView]) -> str:
    """Compact reminder of up to eight tasks."""
    if not tasks:
        return ""
    lines = ["\U0001f4cb Tasks:"]
    for task in tasks[:MAX_TASKS_SHOWN]:
        marker = PRIORITY_MARKERS.get(task.priority, DEFAULT_PRIORITY_MARKER)
        project = f" [{task.project}]" if task.project else ""
        due = f" ⏰ {task.due_date}" if task.due_date else ""
        lines.append(f"{marker} {task.title} [{task.priority}]{project}{due}")
    if len(tasks) > MAX_TASKS_SHOWN:
        lines.append(f"  ... and {len(tasks) - MAX_TASKS_SHOWN} more")
    return "\n".join(lines)


def join_blocks(blocks: Sequence[str]) -> str:
    """Join non-empty blocks with a blank line between them."""
    return "\n\n".join(b for b in blocks if b)
