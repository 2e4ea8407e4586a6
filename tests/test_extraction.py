"""Tests for typed extraction and tool skill distillation."""

import json
from unittest.mock import AsyncMock

import pytest

from memos_lifecycle.extraction import (
    ToolExecution,
    extract_all_typed,
    extract_skill_from_tool,
    extract_typed,
    is_skill_candidate,
    render_skill,
)
from memos_lifecycle.memory_types import MemoryType


@pytest.fixture
def completer() -> AsyncMock:
    return AsyncMock()


# -- extract_typed ------------------------------------------------------------


async def test_string_items_become_memories(completer: AsyncMock) -> None:
    completer.complete.return_value = '["The user works as a nurse", "short"]'
    memories = await extract_typed(completer, MemoryType.PROFILE, "user: I am a nurse")

    assert len(memories) == 1
    assert memories[0].content == "The user works as a nurse"
    assert memories[0].type == "profile"
    assert memories[0].tags == ["user_profile", "stable_fact", "typed_extraction"]


async def test_task_objects_carry_task_fields(completer: AsyncMock) -> None:
    completer.complete.return_value = json.dumps(
        [{"title": "File taxes", "priority": "P1", "due_date": "2025-04-15", "project": "home"}]
    )
    [memory] = await extract_typed(completer, MemoryType.TASK, "user: need to do taxes")

    assert memory.content == "File taxes"
    assert memory.type == "task"
    assert memory.title == "File taxes"
    assert memory.priority == "P1"
    assert memory.due_date == "2025-04-15"
    assert memory.project == "home"
    assert memory.desc is None


async def test_truncates_conversation(completer: AsyncMock) -> None:
    completer.complete.return_value = "[]"
    await extract_typed(completer, MemoryType.FACT, "z" * 10_000)
    prompt = completer.complete.await_args.args[0]
    assert "z" * 6000 in prompt
    assert "z" * 6001 not in prompt


async def test_failure_returns_empty(completer: AsyncMock) -> None:
    completer.complete.side_effect = RuntimeError("down")
    assert await extract_typed(completer, MemoryType.FACT, "text") == []


async def test_unparseable_returns_empty(completer: AsyncMock) -> None:
    completer.complete.return_value = "nothing to report"
    assert await extract_typed(completer, MemoryType.FACT, "text") == []


async def test_extract_all_isolates_types(completer: AsyncMock) -> None:
    text = "user: I work at a bank. I usually start at 8."
    completer.complete.side_effect = [RuntimeError("profile failed"), '["The user starts at 8am"]']

    memories = await extract_all_typed(completer, text)

    assert [m.type for m in memories] == ["behavior"]
    assert completer.complete.await_count == 2


# -- skills -------------------------------------------------------------------


def test_skill_candidate_rules() -> None:
    assert not is_skill_candidate(ToolExecution(name="exec", success=False, duration_ms=5000))
    assert not is_skill_candidate(ToolExecution(name="proxy_read", duration_ms=5000))
    assert not is_skill_candidate(ToolExecution(name="exec", params={"a": 1}, duration_ms=10))
    assert is_skill_candidate(ToolExecution(name="exec", duration_ms=1500))
    assert is_skill_candidate(ToolExecution(name="exec", params={"cmd": "x" * 300}))


def test_render_skill_defaults() -> None:
    text = render_skill({"name": "backup-db"}, "exec")
    assert text.startswith("---\nname: backup-db\n")
    assert "tools: [exec]" in text
    assert "## Steps\n1. Execute tool" in text
    assert "## Tips\n- Check result before proceeding" in text


async def test_extract_skill(completer: AsyncMock) -> None:
    completer.complete.return_value = json.dumps(
        {
            "isSkill": True,
            "skill": {
                "name": "deploy-app",
                "description": "Deploy via docker compose",
                "steps": ["Build image", "Restart stack"],
                "tools": ["exec"],
                "tips": ["Check logs"],
            },
        }
    )
    execution = ToolExecution(name="exec", params={"cmd": "docker compose up"}, duration_ms=4000)

    skill = await extract_skill_from_tool(completer, execution)

    assert skill is not None
    assert "1. Build image\n2. Restart stack" in skill.content
    assert skill.tags == ["agent_skill", "workflow", "tool_skill", "exec"]


async def test_extract_skill_trivial(completer: AsyncMock) -> None:
    completer.complete.return_value = '{"isSkill": false}'
    execution = ToolExecution(name="exec", duration_ms=4000)
    assert await extract_skill_from_tool(completer, execution) is None


async def test_extract_skill_skips_non_candidates(completer: AsyncMock) -> None:
    assert await extract_skill_from_tool(completer, ToolExecution(name="proxy_cron")) is None
    completer.complete.assert_not_awaited()
