"""Plugin entry point: builds the components and wires them to host events.

Hook pipeline:
    before_agent_start   -> smart retrieval, inject relevant memories
    command:new          -> seed the new session with recent context
    agent_end            -> typed memory extraction (throttled)
    before_compaction    -> segment, summarize, persist
    after_compaction     -> enter post-compaction retrieval mode
    tool_result_persist  -> tool traces and skill learning

Every hook is non-fatal: a MemOS outage never crashes the host agent.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

import httpx

from memos_lifecycle.client import MemosClient
from memos_lifecycle.config import Settings
from memos_lifecycle.health import HealthProbe
from memos_lifecycle.hooks import (
    CompactionFlush,
    ContextInjector,
    FactExtractionHook,
    SessionStartHook,
    ToolTraceHook,
)
from memos_lifecycle.llm import build_completer
from memos_lifecycle.state import PluginState
from memos_lifecycle.store import MemoryStore
from memos_lifecycle.tasks import TaskManager
from memos_lifecycle.ticktick import TickTickClient, TickTickSync
from memos_lifecycle.tools import ToolRegistry, register_task_tools

logger = logging.getLogger(__name__)

PLUGIN_ID = "openclaw-memos-lifecycle-plugin"


class HostAPI(Protocol):
    """What the plugin needs from the host runtime."""

    @property
    def plugin_config(self) -> Mapping[str, Any] | None: ...

    def on(self, event: str, handler: Callable[..., Awaitable[Any]]) -> None: ...

    def register_tool(self, definition: dict[str, Any]) -> None: ...


class MemosLifecyclePlugin:
    """Memory bridge between the host agent and MemOS.

    Args:
        transport: Optional httpx transport for MemOS, used by tests.
        ticktick_transport: Optional httpx transport for TickTick.
        clock: Monotonic clock shared by all time windows.
    """

    id = PLUGIN_ID
    name = "MemOS Lifecycle"
    description = "Memory bridge: context injection, compaction flush, fact extraction, tool traces"

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        ticktick_transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._ticktick_transport = ticktick_transport
        self._clock = clock
        self.settings: Settings | None = None
        self.state = PluginState(clock=clock)
        self.registry = ToolRegistry()
        self.client: MemosClient | None = None
        self.store: MemoryStore | None = None
        self.tasks: TaskManager | None = None
        self._ticktick: TickTickClient | None = None

    def register(self, api: HostAPI) -> int:
        """Build components from ``api.plugin_config`` and attach enabled hooks.

        Returns the number of event handlers registered.
        """
        settings = Settings.from_plugin_config(api.plugin_config)
        self.settings = settings
        state = self.state
        logger.info("Registering MemOS lifecycle plugin (%s)", settings.memos_api_url)

        self.client = MemosClient(settings, transport=self._transport)
        self.store = store = MemoryStore(self.client, stats=state.stats)
        health = HealthProbe(self.client, clock=self._clock)
        completer = build_completer(settings, self.client)

        task_sync = None
        if settings.ticktick_enabled:
            self._ticktick = TickTickClient(
                settings.ticktick_access_token,
                transport=self._ticktick_transport,
                clock=self._clock,
            )
            task_sync = TickTickSync(self._ticktick)
            logger.info("TickTick sync enabled")
        elif settings.ticktick_sync:
            logger.warning("TickTick sync requested but no TICKTICK_ACCESS_TOKEN configured")
        self.tasks = tasks = TaskManager(store, state.dedup, task_sync, stats=state.stats)

        hooks: list[tuple[str, Callable[..., Awaitable[Any]]]] = []
        if settings.context_injection:
            reranker = completer if settings.reranker_enabled else None
            hooks.append(
                ("before_agent_start", ContextInjector(state, store, health, tasks, reranker))
            )
            hooks.append(("command:new", SessionStartHook(store, health)))
        if settings.fact_extraction:
            hooks.append(("agent_end", FactExtractionHook(state, store, health, completer)))
        if settings.compaction_flush:
            flush = CompactionFlush(state, store, health, completer)
            hooks.append(("before_compaction", flush.before))
            hooks.append(("after_compaction", flush.after))
        if settings.tool_traces:
            hooks.append(("tool_result_persist", ToolTraceHook(state, store, health, completer)))

        for event, handler in hooks:
            api.on(event, handler)

        if settings.task_tools:
            register_task_tools(self.registry, tasks, state)
            for definition in self.registry.host_definitions():
                api.register_tool(definition)

        logger.info(
            "MemOS lifecycle plugin registered (%d hooks, %d tools)",
            len(hooks),
            len(self.registry.tool_names),
        )
        return len(hooks)

    async def aclose(self) -> None:
        """Flush detached writes and close HTTP clients."""
        if self.tasks is not None:
            await self.tasks.drain()
        if self.store is not None:
            await self.store.drain()
        if self.client is not None:
            await self.client.aclose()
        if self._ticktick is not None:
            await self._ticktick.aclose()
