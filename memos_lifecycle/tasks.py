"""Task lifecycle on top of the append-only memory log.

A task is never edited in place. Creation writes a ``_type: task`` record
and completion writes a separate ``_type: task_update`` record pointing at
the same ``task_id``. :func:`reconcile_tasks` folds the two sets back into
one current view per task.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from memos_lifecycle.client import Timeouts
from memos_lifecycle.utils import generate_task_id

if TYPE_CHECKING:
    from memos_lifecycle.dedup import DedupCache
    from memos_lifecycle.models import MemoryItem
    from memos_lifecycle.stats import Stats
    from memos_lifecycle.store import MemoryStore

logger = logging.getLogger(__name__)

FETCH_CAP = 30
DEFAULT_PRIORITY = "P2"
TASK_PREFIX = "TASK: "


def normalize_date(value: str | datetime | None) -> str | None:
    """Render a date as ``2026-02-10T00:00:00+0000`` (UTC).

    Accepts ``datetime`` objects and ISO strings (date-only, naive, ``Z`` or
    offset). Naive values are taken as UTC. Returns None for anything that
    isn't a date, e.g. ``"Friday"``.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        when = value
    else:
        try:
            when = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return when.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S+0000")


# -- Data structures ---------------------------------------------------------


@dataclass
class TaskView:
    """Current state of one task, merged from its creation and latest update."""

    task_id: str
    title: str
    task_status: str = "pending"
    priority: str = DEFAULT_PRIORITY
    due_date: str | None = None
    start_date: str | None = None
    desc: str | None = None
    project: str | None = None
    items: list[str] | None = None
    context: str | None = None
    task_created_at: str | None = None
    task_completed_at: str | None = None
    outcome: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class CreatedTask:
    task_id: str | None
    title: str
    priority: str
    task_status: str  # "pending" or "duplicate"
    info: dict[str, Any] = field(default_factory=dict)


class TaskSync(Protocol):
    """Mirror of task creation and completion into an external task list."""

    async def task_created(self, info: dict[str, Any]) -> bool: ...

    async def task_completed(self, task_id: str) -> bool: ...


# -- Reconciliation ----------------------------------------------------------


def _supersedes(new: dict[str, Any], existing: dict[str, Any] | None) -> bool:
    """Whether update ``new`` replaces ``existing`` for the same task.

    A timestamped update beats an untimestamped one. Between two timestamped
    updates the later ``task_completed_at`` wins. Ties and missing timestamps
    keep the one seen first.
    """
    if existing is None:
        return True
    new_ts = new.get("task_completed_at")
    old_ts = existing.get("task_completed_at")
    if not new_ts:
        return False
    return not old_ts or str(new_ts) > str(old_ts)


def reconcile_tasks(
    creations: Sequence[MemoryItem],
    updates: Sequence[MemoryItem],
    status: str | None = None,
    priority: str | None = None,
    project: str | None = None,
) -> list[TaskView]:
    """Merge creation and update records into current task views.

    Updates never create tasks on their own. A ``task_id`` repeated among
    creations uses its first occurrence. Filters apply to the effective
    status and the creation's priority and project.
    """
    latest: dict[str, dict[str, Any]] = {}
    for record in updates:
        info = record.info
        task_id = info.get("task_id")
        if task_id and _supersedes(info, latest.get(task_id)):
            latest[task_id] = info

    views: list[TaskView] = []
    seen: set[str] = set()
    for record in creations:
        info = record.info
        task_id = info.get("task_id")
        if not task_id or task_id in seen:
            continue
        seen.add(task_id)

        update = latest.get(task_id, {})
        current_status = update.get("task_status") or info.get("task_status") or "pending"
        task_priority = info.get("priority") or DEFAULT_PRIORITY

        if status and current_status != status:
            continue
        if priority and task_priority != priority:
            continue
        if project and info.get("project") != project:
            continue

        title = info.get("title") or record.content.removeprefix(TASK_PREFIX).strip()
        items = info.get("items")
        views.append(
            TaskView(
                task_id=task_id,
                title=title,
                task_status=current_status,
                priority=task_priority,
                due_date=info.get("due_date"),
                start_date=info.get("start_date"),
                desc=info.get("desc"),
                project=info.get("project"),
                items=list(items) if isinstance(items, list) else None,
                context=info.get("context"),
                task_created_at=info.get("task_created_at"),
                task_completed_at=update.get("task_completed_at"),
                outcome=update.get("outcome"),
            )
        )
    return views


# -- Manager -----------------------------------------------------------------


class TaskManager:
    """Create, complete, and list tasks stored as memory records."""

    def __init__(
        self,
        store: MemoryStore,
        dedup: DedupCache,
        task_sync: TaskSync | None = None,
        stats: Stats | None = None,
    ) -> None:
        self._store = store
        self._dedup = dedup
        self._sync = task_sync
        self._stats = stats
        self._pending: set[asyncio.Task] = set()

    async def create_task(
        self,
        title: str,
        *,
        priority: str = DEFAULT_PRIORITY,
        due_date: str | None = None,
        start_date: str | None = None,
        desc: str | None = None,
        project: str | None = None,
        items: list[str] | None = None,
        context: str | None = None,
    ) -> CreatedTask:
        """Write a creation record and return the new task's id.

        A title created within the dedup window returns status
        ``duplicate`` with no id and writes nothing.

        Raises:
            TransportError: If the write fails after retries.
        """
        content = f"{TASK_PREFIX}{title}"
        if self._dedup.is_duplicate(content, "task"):
            logger.info("Task dedup: %r already created recently, skipping", title)
            return CreatedTask(
                task_id=None, title=title, priority=priority, task_status="duplicate"
            )

        task_id = generate_task_id()
        info: dict[str, Any] = {
            "_type": "task",
            "task_id": task_id,
            "task_status": "pending",
            "title": title,
            "priority": priority,
            "task_created_at": normalize_date(datetime.now(UTC)),
        }
        if due_date:
            info["due_date"] = normalize_date(due_date) or due_date
        if start_date:
            info["start_date"] = normalize_date(start_date) or start_date
        if desc:
            info["desc"] = desc
        if project:
            info["project"] = project
        if items:
            info["items"] = list(items)
        if context:
            info["context"] = context

        await self._store.add(content, ["task", "pending"], info)
        self._dedup.mark_added(content, "task")
        logger.info("Task created: %s %r [%s]", task_id, title, priority)

        if self._sync is not None:
            self._detach(self._sync_created(info))
        return CreatedTask(
            task_id=task_id, title=title, priority=priority, task_status="pending", info=info
        )

    async def find_tasks(
        self,
        *,
        status: str | None = None,
        priority: str | None = None,
        project: str | None = None,
    ) -> list[TaskView]:
        """Current tasks after reconciliation. Never raises.

        Creation and update records are fetched concurrently; a failed fetch
        degrades to an empty half.
        """
        creations, updates = await asyncio.gather(
            self._fetch("task", {"_type": "task"}),
            self._fetch("TASK_COMPLETED task done", {"_type": "task_update"}),
        )
        return reconcile_tasks(creations, updates, status, priority, project)

    async def complete_task(self, task_id: str, outcome: str = "") -> str:
        """Append a completion record for ``task_id`` and return its timestamp.

        Raises:
            TransportError: If the write fails after retries.
        """
        completed_at = normalize_date(datetime.now(UTC)) or ""
        content = f"TASK_COMPLETED: {task_id}"
        if outcome:
            content += f" - {outcome}"
        info: dict[str, Any] = {
            "_type": "task_update",
            "task_id": task_id,
            "task_status": "done",
            "task_completed_at": completed_at,
        }
        if outcome:
            info["outcome"] = outcome

        await self._store.add(content, ["task", "done"], info)
        logger.info("Task completed: %s", task_id)

        if self._sync is not None:
            self._detach(self._sync_completed(task_id))
        return completed_at

    async def drain(self) -> None:
        """Wait for outstanding task-list sync calls."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # -- Helpers -------------------------------------------------------------

    async def _fetch(self, query: str, filter: dict[str, Any]) -> list[MemoryItem]:
        try:
            return await self._store.search_text(
                query, FETCH_CAP, filter=filter, timeout=Timeouts.ADD
            )
        except Exception as exc:
            logger.warning("find_tasks: %s search failed: %s", filter["_type"], exc)
            return []

    def _detach(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _sync_created(self, info: dict[str, Any]) -> None:
        try:
            mirrored = await self._sync.task_created(info)
        except Exception as exc:
            logger.warning("Task sync (create %s) failed: %s", info.get("task_id"), exc)
            if self._stats:
                self._stats.task_sync.errors += 1
            return
        if mirrored and self._stats:
            self._stats.task_sync.created += 1

    async def _sync_completed(self, task_id: str) -> None:
        try:
            mirrored = await self._sync.task_completed(task_id)
        except Exception as exc:
            logger.warning("Task sync (complete %s) failed: %s", task_id, exc)
            if self._stats:
                self._stats.task_sync.errors += 1
            return
        if mirrored and self._stats:
            self._stats.task_sync.completed += 1
