"""Base types for the plugin's host-callable tools."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel


@dataclass
class ToolResult:
    """Outcome of one tool call; exactly one of ``data``/``error`` is meaningful."""

    data: dict[str, Any] | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_content(self) -> str:
        """JSON string handed back to the host agent."""
        payload = {"error": self.error} if self.error else (self.data or {})
        return json.dumps(payload, ensure_ascii=False)


class ToolParams(BaseModel):
    """Parameter model for a tool; its JSON schema is what the host sees."""


class BaseTool(ABC):
    """A tool bound to plugin components (task manager, stats).

    Subclasses set the class attributes and implement :meth:`execute`,
    which receives the validated fields of ``params_model`` as keyword
    arguments.
    """

    name: str = ""
    description: str = ""
    category: str = ""
    params_model: type[ToolParams] | None = None

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult: ...
