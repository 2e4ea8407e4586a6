"""Task tools the agent can call: create, complete, list, and plugin stats."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from pydantic import Field

from memos_lifecycle.client import TransportError
from memos_lifecycle.formatting import format_task_list
from memos_lifecycle.tools.base import BaseTool, ToolParams, ToolResult

if TYPE_CHECKING:
    from memos_lifecycle.state import PluginState
    from memos_lifecycle.tasks import TaskManager
    from memos_lifecycle.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

Priority = Literal["P0", "P1", "P2"]


# -- Param models ------------------------------------------------------------


class CreateTaskParams(ToolParams):
    title: str = Field(description="Short, actionable task title")
    priority: Priority = Field(
        default="P2",
        description="P0 urgent/blocking, P1 this week, P2 no deadline",
    )
    due_date: str | None = Field(default=None, description="Due date, ISO format preferred")
    start_date: str | None = Field(default=None, description="Start date, ISO format preferred")
    desc: str | None = Field(default=None, description="Details")
    project: str | None = Field(default=None, description="Project name")
    items: list[str] | None = Field(default=None, description="Ordered subtasks")
    context: str | None = Field(default=None, description="Why the task exists")


class CompleteTaskParams(ToolParams):
    task_id: str = Field(description="ID returned by create_task or list_tasks")
    outcome: str = Field(default="", description="What was done")


class ListTasksParams(ToolParams):
    status: Literal["pending", "done"] | None = Field(
        default=None, description="Only tasks with this status"
    )
    priority: Priority | None = Field(default=None, description="Only tasks with this priority")
    project: str | None = Field(default=None, description="Only tasks in this project")


# -- Tools -------------------------------------------------------------------


class CreateTaskTool(BaseTool):
    name = "create_task"
    description = (
        "Create a task in long-term memory. Use when the user asks to add a "
        "task, todo, or reminder. Returns the new task_id."
    )
    category = "tasks"
    params_model = CreateTaskParams

    def __init__(self, manager: TaskManager) -> None:
        self._manager = manager

    async def execute(self, **kwargs) -> ToolResult:
        title = kwargs.pop("title")
        try:
            created = await self._manager.create_task(title, **kwargs)
        except TransportError as exc:
            logger.warning("create_task failed: %s", exc)
            return ToolResult(error=f"Could not save task: {exc}")

        if created.task_status == "duplicate":
            return ToolResult(
                data={
                    "task_status": "duplicate",
                    "title": created.title,
                    "message": "A task with this title was created moments ago.",
                }
            )
        return ToolResult(
            data={
                "task_id": created.task_id,
                "title": created.title,
                "priority": created.priority,
                "task_status": created.task_status,
            }
        )


class CompleteTaskTool(BaseTool):
    name = "complete_task"
    description = "Mark a task as done, optionally recording the outcome."
    category = "tasks"
    params_model = CompleteTaskParams

    def __init__(self, manager: TaskManager) -> None:
        self._manager = manager

    async def execute(self, task_id: str, outcome: str = "") -> ToolResult:
        try:
            completed_at = await self._manager.complete_task(task_id, outcome)
        except TransportError as exc:
            logger.warning("complete_task failed: %s", exc)
            return ToolResult(error=f"Could not complete task: {exc}")
        return ToolResult(
            data={"task_id": task_id, "task_status": "done", "task_completed_at": completed_at}
        )


class ListTasksTool(BaseTool):
    name = "list_tasks"
    description = "List tasks with their current status, optionally filtered."
    category = "tasks"
    params_model = ListTasksParams

    def __init__(self, manager: TaskManager) -> None:
        self._manager = manager

    async def execute(
        self,
        status: str | None = None,
        priority: str | None = None,
        project: str | None = None,
    ) -> ToolResult:
        tasks = await self._manager.find_tasks(status=status, priority=priority, project=project)
        return ToolResult(
            data={
                "count": len(tasks),
                "tasks": [t.to_dict() for t in tasks],
                "summary": format_task_list(tasks),
            }
        )


def register_task_tools(
    registry: ToolRegistry,
    manager: TaskManager,
    state: PluginState,
) -> None:
    """Add the task tools and the ``memos_stats`` tool to ``registry``."""
    registry.register(CreateTaskTool(manager))
    registry.register(CompleteTaskTool(manager))
    registry.register(ListTasksTool(manager))

    @registry.tool(
        name="memos_stats",
        description="Show MemOS plugin counters: searches, injections, extractions, flushes.",
        category="diagnostics",
    )
    async def memos_stats() -> ToolResult:
        return ToolResult(data={"stats": state.stats.format()})
