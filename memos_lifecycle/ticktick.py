"""TickTick Open API client and the task-list mirror built on it.

TickTick is the source of truth for project names: a MemOS project is
matched against existing TickTick projects by name, and tasks for an
unknown project land in the default ``personal`` project.
"""

from __future__ import annotations

import logging
import time
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from memos_lifecycle.tasks import normalize_date

logger = logging.getLogger(__name__)

API_BASE = "https://api.ticktick.com/open/v1"
REQUEST_TIMEOUT = 10.0
PROJECT_CACHE_TTL = 300.0
DEFAULT_PROJECT_NAME = "personal"

_TO_TICKTICK = {"P0": 5, "P1": 3, "P2": 1}
_FROM_TICKTICK = {5: "P0", 3: "P1", 1: "P2"}
# Joiners and variation selectors glued to a leading emoji.
_EMOJI_GLUE = {"\u200d", "\ufe0e", "\ufe0f"}


class TaskServiceError(Exception):
    """A TickTick request failed or returned a non-2xx status."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def map_priority_to_ticktick(priority: str | None) -> int:
    """P0/P1/P2 -> 5/3/1; anything else -> 0 (none)."""
    return _TO_TICKTICK.get(priority or "", 0)


def map_priority_from_ticktick(priority: int | None) -> str:
    """5/3/1 -> P0/P1/P2; none or unknown -> P2."""
    return _FROM_TICKTICK.get(priority or 0, "P2")


def normalize_project_name(name: str) -> str:
    """Strip leading emoji and lowercase: ``"💼Work"`` -> ``"work"``."""
    start = 0
    while start < len(name) and (
        unicodedata.category(name[start]) in ("So", "Sk", "Cs") or name[start] in _EMOJI_GLUE
    ):
        start += 1
    return name[start:].strip().lower()


@dataclass
class Project:
    id: str
    name: str
    closed: bool = False
    fallback: bool = False


class TickTickClient:
    """Thin async wrapper over the TickTick Open API.

    Args:
        token: OAuth bearer token.
        transport: Optional httpx transport, used by tests to stub the API.
        clock: Monotonic clock for the project cache.
    """

    def __init__(
        self,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=API_BASE,
            headers={"Authorization": f"Bearer {token}"},
            timeout=REQUEST_TIMEOUT,
            transport=transport,
        )
        self._clock = clock
        self._projects: list[Project] | None = None
        self._fetched_at = 0.0

    async def _request(self, method: str, endpoint: str, body: dict | None = None) -> Any:
        try:
            resp = await self._http.request(method, endpoint, json=body)
        except httpx.TimeoutException as exc:
            raise TaskServiceError(f"TickTick timeout: {method} {endpoint}") from exc
        except httpx.HTTPError as exc:
            raise TaskServiceError(f"TickTick request failed: {exc}") from exc

        if not resp.is_success:
            logger.error("TickTick API error: %s %s -> %d", method, endpoint, resp.status_code)
            raise TaskServiceError(
                f"TickTick HTTP {resp.status_code}: {resp.text[:200]}",
                status=resp.status_code,
            )
        if resp.status_code == 204 or not resp.text:
            return {}
        return resp.json()

    # -- Projects ------------------------------------------------------------

    async def fetch_projects(self, force_refresh: bool = False) -> list[Project]:
        """All projects, cached for five minutes."""
        now = self._clock()
        if (
            not force_refresh
            and self._projects is not None
            and now - self._fetched_at < PROJECT_CACHE_TTL
        ):
            return self._projects

        raw = await self._request("GET", "/project")
        projects = [
            Project(id=str(p["id"]), name=str(p.get("name", "")), closed=bool(p.get("closed")))
            for p in raw or []
            if isinstance(p, dict) and p.get("id")
        ]
        self._projects = projects
        self._fetched_at = now
        logger.info(
            "TickTick projects fetched: %d total, %d active",
            len(projects),
            sum(1 for p in projects if not p.closed),
        )
        return projects

    async def resolve_project_id(self, project_name: str | None) -> Project | None:
        """Match an open project by emoji-stripped, case-insensitive name."""
        if not project_name:
            return None
        needle = normalize_project_name(project_name)
        for project in await self.fetch_projects():
            if not project.closed and normalize_project_name(project.name) == needle:
                return project
        logger.info("TickTick project not found: %r", project_name)
        return None

    async def resolve_or_fallback(self, project_name: str | None) -> Project | None:
        """Resolve ``project_name``, else the default project, else None."""
        found = await self.resolve_project_id(project_name)
        if found:
            return found

        fallback = await self.resolve_project_id(DEFAULT_PROJECT_NAME)
        active = ", ".join(p.name for p in await self.fetch_projects() if not p.closed)
        if fallback:
            logger.info(
                "TickTick project %r not found, using %r. Available: %s",
                project_name,
                fallback.name,
                active,
            )
            return Project(id=fallback.id, name=fallback.name, fallback=True)

        logger.warning(
            "TickTick project %r and default %r both missing, not syncing. Available: %s",
            project_name,
            DEFAULT_PROJECT_NAME,
            active,
        )
        return None

    # -- Tasks ---------------------------------------------------------------

    async def create_task(self, task: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/task", task)

    async def complete_task(self, project_id: str, task_id: str) -> None:
        await self._request("POST", f"/project/{project_id}/task/{task_id}/complete")

    async def aclose(self) -> None:
        await self._http.aclose()


class TickTickSync:
    """Mirror MemOS task creation and completion into TickTick.

    Remembers which TickTick task backs each MemOS ``task_id`` created in
    this process; completions of tasks it never mirrored are ignored.
    """

    def __init__(self, client: TickTickClient) -> None:
        self._client = client
        self._mirrored: dict[str, tuple[str, str]] = {}

    async def task_created(self, info: dict[str, Any]) -> bool:
        project = await self._client.resolve_or_fallback(info.get("project"))
        if project is None:
            return False

        payload: dict[str, Any] = {
            "title": info["title"],
            "projectId": project.id,
            "priority": map_priority_to_ticktick(info.get("priority")),
        }
        if info.get("desc"):
            payload["content"] = info["desc"]
        for field_name, key in (("start_date", "startDate"), ("due_date", "dueDate")):
            value = normalize_date(info.get(field_name))
            if value:
                payload[key] = value
        if info.get("items"):
            payload["items"] = [{"title": item} for item in info["items"]]

        created = await self._client.create_task(payload)
        ticktick_id = created.get("id") if isinstance(created, dict) else None
        if ticktick_id:
            self._mirrored[info["task_id"]] = (project.id, str(ticktick_id))
        logger.info("TickTick task created for %s in %r", info["task_id"], project.name)
        return True

    async def task_completed(self, task_id: str) -> bool:
        mirrored = self._mirrored.get(task_id)
        if mirrored is None:
            logger.debug("No TickTick task recorded for %s", task_id)
            return False
        project_id, ticktick_id = mirrored
        await self._client.complete_task(project_id, ticktick_id)
        del self._mirrored[task_id]
        logger.info("TickTick task completed for %s", task_id)
        return True
