"""Per-plugin catalog of the tools handed to the host agent."""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from memos_lifecycle.tools.base import BaseTool, ToolParams, ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


@dataclass
class RegisteredTool:
    name: str
    description: str
    category: str
    handler: Callable[..., Awaitable[ToolResult]]
    params_model: type[ToolParams] | None = None

    @property
    def schema(self) -> dict[str, Any]:
        if self.params_model is None:
            return dict(_EMPTY_SCHEMA)
        return self.params_model.model_json_schema()


class ToolRegistry:
    """Tools owned by one plugin instance.

    Stateful tools are registered as :class:`BaseTool` instances; one-off
    closures over plugin state (``memos_stats``) use the :meth:`tool`
    decorator. Registering a name twice replaces the earlier entry.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegisteredTool] = {}

    def tool(
        self,
        *,
        name: str,
        description: str,
        category: str,
        params_model: type[ToolParams] | None = None,
    ) -> Callable:
        def decorator(fn: Callable[..., Awaitable[ToolResult]]) -> Callable:
            if not inspect.iscoroutinefunction(fn):
                raise TypeError(f"Tool handler '{name}' must be an async function")
            self._add(RegisteredTool(name, description, category, fn, params_model))
            return fn

        return decorator

    def register(self, tool: BaseTool) -> None:
        self._add(
            RegisteredTool(
                tool.name, tool.description, tool.category, tool.execute, tool.params_model
            )
        )

    def _add(self, entry: RegisteredTool) -> None:
        if entry.name in self._entries:
            logger.warning("Replacing already registered tool '%s'", entry.name)
        self._entries[entry.name] = entry

    def get(self, name: str) -> RegisteredTool | None:
        return self._entries.get(name)

    @property
    def tool_names(self) -> list[str]:
        return list(self._entries)

    async def execute(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Validate ``arguments`` and run the named tool.

        Never raises. Unknown names, validation failures and handler
        exceptions all come back as ``ToolResult(error=...)``.
        """
        entry = self._entries.get(name)
        if entry is None:
            return ToolResult(error=f"Unknown tool: {name}")

        started = time.monotonic()
        try:
            kwargs = (
                entry.params_model(**(arguments or {})).model_dump()
                if entry.params_model is not None
                else dict(arguments or {})
            )
            result = await entry.handler(**kwargs)
        except Exception:
            logger.exception("Tool '%s' raised after %.2fs", name, time.monotonic() - started)
            return ToolResult(error=f"Tool '{name}' failed. Check logs for details.")

        elapsed = time.monotonic() - started
        if result.success:
            logger.debug("Tool '%s' finished in %.2fs", name, elapsed)
        else:
            logger.warning("Tool '%s' reported an error in %.2fs: %s", name, elapsed, result.error)
        return result

    def host_definitions(self) -> list[dict[str, Any]]:
        """Definitions in the host's ``{name, description, parameters, execute}`` shape.

        The host calls ``execute(params)`` and receives the result as a JSON
        string.
        """
        return [self._host_definition(entry) for entry in self._entries.values()]

    def _host_definition(self, entry: RegisteredTool) -> dict[str, Any]:
        async def execute(params: dict[str, Any] | None = None) -> str:
            return (await self.execute(entry.name, params)).to_content()

        return {
            "name": entry.name,
            "description": entry.description,
            "parameters": entry.schema,
            "execute": execute,
        }
