"""Tests for task reconciliation and the TaskManager."""

from unittest.mock import AsyncMock

import pytest

from memos_lifecycle.client import TransportError
from memos_lifecycle.models import MemoryItem
from memos_lifecycle.tasks import TaskManager, normalize_date, reconcile_tasks


def _creation(task_id: str, title: str = "Do it", **info) -> MemoryItem:
    return MemoryItem(
        content=f"TASK: {title}",
        info={"_type": "task", "task_id": task_id, "task_status": "pending", **info},
    )


def _update(task_id: str, completed_at: str | None = None, **info) -> MemoryItem:
    data = {"_type": "task_update", "task_id": task_id, "task_status": "done", **info}
    if completed_at:
        data["task_completed_at"] = completed_at
    return MemoryItem(content=f"TASK_COMPLETED: {task_id}", info=data)


# -- normalize_date -------------------------------------------------------------


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2026-02-10", "2026-02-10T00:00:00+0000"),
        ("2026-02-10T09:30:00Z", "2026-02-10T09:30:00+0000"),
        ("2026-02-10T12:00:00+03:00", "2026-02-10T09:00:00+0000"),
        ("Friday", None),
        (None, None),
        ("", None),
    ],
)
def test_normalize_date(value, expected) -> None:
    assert normalize_date(value) == expected


# -- reconcile_tasks ------------------------------------------------------------


def test_update_marks_task_done() -> None:
    views = reconcile_tasks(
        [_creation("t1"), _creation("t2")],
        [_update("t1", "2025-01-02T00:00:00+0000", outcome="shipped")],
    )
    by_id = {v.task_id: v for v in views}
    assert by_id["t1"].task_status == "done"
    assert by_id["t1"].outcome == "shipped"
    assert by_id["t2"].task_status == "pending"


def test_status_filter() -> None:
    creations = [_creation("t1"), _creation("t2")]
    updates = [_update("t1", "2025-01-02T00:00:00+0000")]
    assert [v.task_id for v in reconcile_tasks(creations, updates, status="pending")] == ["t2"]
    assert [v.task_id for v in reconcile_tasks(creations, updates, status="done")] == ["t1"]


def test_updates_never_create_tasks() -> None:
    assert reconcile_tasks([], [_update("ghost", "2025-01-01T00:00:00+0000")]) == []


def test_duplicate_creations_use_first() -> None:
    views = reconcile_tasks([_creation("t1", "First"), _creation("t1", "Second")], [])
    assert [v.title for v in views] == ["First"]


def test_latest_update_wins_regardless_of_order() -> None:
    early = _update("t1", "2025-01-01T00:00:00+0000", outcome="early", task_status="done")
    late = _update("t1", "2025-03-01T00:00:00+0000", outcome="late", task_status="done")
    for updates in ([early, late], [late, early]):
        [view] = reconcile_tasks([_creation("t1")], updates)
        assert view.outcome == "late"


def test_timestamped_update_beats_untimestamped() -> None:
    bare = _update("t1", outcome="bare")
    stamped = _update("t1", "2025-01-01T00:00:00+0000", outcome="stamped")
    for updates in ([bare, stamped], [stamped, bare]):
        [view] = reconcile_tasks([_creation("t1")], updates)
        assert view.outcome == "stamped"


def test_ties_keep_first_seen() -> None:
    a = _update("t1", "2025-01-01T00:00:00+0000", outcome="a")
    b = _update("t1", "2025-01-01T00:00:00+0000", outcome="b")
    [view] = reconcile_tasks([_creation("t1")], [a, b])
    assert view.outcome == "a"


def test_priority_and_project_filters() -> None:
    creations = [
        _creation("t1", priority="P0", project="work"),
        _creation("t2", priority="P2", project="home"),
        _creation("t3"),
    ]
    assert [v.task_id for v in reconcile_tasks(creations, [], priority="P0")] == ["t1"]
    assert [v.task_id for v in reconcile_tasks(creations, [], priority="P2")] == ["t2", "t3"]
    assert [v.task_id for v in reconcile_tasks(creations, [], project="home")] == ["t2"]


def test_title_falls_back_to_content() -> None:
    item = MemoryItem(content="TASK: Water plants", info={"_type": "task", "task_id": "t9"})
    [view] = reconcile_tasks([item], [])
    assert view.title == "Water plants"
    assert view.priority == "P2"
    assert view.to_dict() == {
        "task_id": "t9",
        "title": "Water plants",
        "task_status": "pending",
        "priority": "P2",
    }


def test_skips_records_without_task_id() -> None:
    assert reconcile_tasks([MemoryItem(content="TASK: x", info={"_type": "task"})], []) == []


# -- TaskManager ----------------------------------------------------------------


@pytest.fixture
def manager(store, state) -> TaskManager:
    return TaskManager(store, state.dedup, stats=state.stats)


async def test_create_task_writes_record(manager: TaskManager, memos) -> None:
    created = await manager.create_task(
        "Renew passport", priority="P1", due_date="2025-07-01", project="personal"
    )

    assert created.task_status == "pending"
    assert created.task_id.startswith("task_")
    [body] = memos.bodies("/product/add")
    assert body["messages"] == "TASK: Renew passport"
    assert body["custom_tags"] == ["task", "pending"]
    info = body["info"]
    assert info["_type"] == "task"
    assert info["task_id"] == created.task_id
    assert info["priority"] == "P1"
    assert info["due_date"] == "2025-07-01T00:00:00+0000"
    assert info["project"] == "personal"
    assert "desc" not in info


async def test_create_task_keeps_unparseable_due_date(manager: TaskManager, memos) -> None:
    await manager.create_task("Call the plumber about the leak", due_date="Friday")
    assert memos.bodies("/product/add")[0]["info"]["due_date"] == "Friday"


async def test_duplicate_create_writes_nothing(manager: TaskManager, memos) -> None:
    await manager.create_task("Renew passport")
    again = await manager.create_task("Renew passport")

    assert again.task_status == "duplicate"
    assert again.task_id is None
    assert len(memos.bodies("/product/add")) == 1


async def test_create_failure_raises_and_does_not_mark(manager: TaskManager, memos) -> None:
    memos.fail_paths.add("/product/add")
    with pytest.raises(TransportError):
        await manager.create_task("Renew passport")
    memos.fail_paths.clear()
    created = await manager.create_task("Renew passport")
    assert created.task_status == "pending"


async def test_complete_task_writes_update(manager: TaskManager, memos) -> None:
    completed_at = await manager.complete_task("task_1_abc", "all done")

    [body] = memos.bodies("/product/add")
    assert body["messages"] == "TASK_COMPLETED: task_1_abc - all done"
    assert body["custom_tags"] == ["task", "done"]
    assert body["info"]["task_status"] == "done"
    assert body["info"]["outcome"] == "all done"
    assert body["info"]["task_completed_at"] == completed_at
    assert completed_at.endswith("+0000")


async def test_find_tasks_reconciles(manager: TaskManager, memos) -> None:
    def search(body):
        if body["filter"]["_type"] == "task":
            return memos.payload(
                text=[
                    {"memory": "TASK: A", "info": {"_type": "task", "task_id": "a", "title": "A"}},
                    {"memory": "TASK: B", "info": {"_type": "task", "task_id": "b", "title": "B"}},
                ]
            )
        return memos.payload(
            text=[
                {
                    "memory": "TASK_COMPLETED: a",
                    "info": {"_type": "task_update", "task_id": "a", "task_status": "done"},
                }
            ]
        )

    memos.search = search
    pending = await manager.find_tasks(status="pending")

    assert [t.task_id for t in pending] == ["b"]
    queries = {b["filter"]["_type"]: b for b in memos.bodies("/product/search")}
    assert queries["task"]["top_k"] == 30
    assert queries["task_update"]["query"] == "TASK_COMPLETED task done"


async def test_find_tasks_degrades_when_update_search_fails(state) -> None:
    creation = MemoryItem(content="TASK: A", info={"_type": "task", "task_id": "a"})
    fake_store = AsyncMock()
    fake_store.search_text.side_effect = [[creation], TransportError("/product/search", "down")]
    manager = TaskManager(fake_store, state.dedup)

    tasks = await manager.find_tasks()

    assert [t.task_id for t in tasks] == ["a"]
    assert tasks[0].task_status == "pending"


async def test_find_tasks_never_raises(manager: TaskManager, memos) -> None:
    memos.fail_paths.add("/product/search")
    assert await manager.find_tasks() == []


# -- Task sync ------------------------------------------------------------------


async def test_sync_called_and_counted(store, state) -> None:
    sync = AsyncMock()
    sync.task_created.return_value = True
    sync.task_completed.return_value = False
    manager = TaskManager(store, state.dedup, task_sync=sync, stats=state.stats)

    created = await manager.create_task("Book flights to Lisbon")
    await manager.complete_task(created.task_id)
    await manager.drain()

    sync.task_created.assert_awaited_once()
    assert sync.task_created.await_args.args[0]["task_id"] == created.task_id
    sync.task_completed.assert_awaited_once_with(created.task_id)
    assert state.stats.task_sync.created == 1
    assert state.stats.task_sync.completed == 0


async def test_sync_failure_is_isolated(store, state, memos) -> None:
    sync = AsyncMock()
    sync.task_created.side_effect = RuntimeError("ticktick down")
    manager = TaskManager(store, state.dedup, task_sync=sync, stats=state.stats)

    created = await manager.create_task("Book flights to Lisbon")
    await manager.drain()

    assert created.task_status == "pending"
    assert state.stats.task_sync.errors == 1
    assert len(memos.bodies("/product/add")) == 1
