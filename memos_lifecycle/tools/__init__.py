"""Tool framework for the tools this plugin registers with the host."""

from memos_lifecycle.tools.base import BaseTool, ToolParams, ToolResult
from memos_lifecycle.tools.registry import ToolRegistry
from memos_lifecycle.tools.task_tools import register_task_tools

__all__ = [
    "BaseTool",
    "ToolParams",
    "ToolRegistry",
    "ToolResult",
    "register_task_tools",
]
