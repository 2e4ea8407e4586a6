"""Typed memory extraction: one LLM prompt per detected category.

Each category runs in isolation so a failed or malformed answer for one
type never costs the others.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from memos_lifecycle.client import Timeouts
from memos_lifecycle.memory_types import (
    EXTRACTION_PROMPTS,
    MemoryType,
    detect_relevant_types,
    tags_for_type,
)
from memos_lifecycle.utils import parse_json

if TYPE_CHECKING:
    from memos_lifecycle.llm import Completer

logger = logging.getLogger(__name__)

MAX_CONVERSATION_CHARS = 6000
MIN_STRING_CHARS = 10
TASK_FIELDS = ("title", "priority", "due_date", "project", "desc")

# Tools whose calls are too trivial to document as skills.
SIMPLE_TOOLS = frozenset(
    {
        "proxy_read",
        "proxy_message",
        "proxy_tts",
        "proxy_web_search",
        "proxy_session_status",
        "proxy_sessions_list",
        "proxy_cron",
    }
)
SKILL_MIN_DURATION_MS = 1000
SKILL_MIN_PARAMS_CHARS = 200


# -- Data structures ---------------------------------------------------------


@dataclass
class ExtractedMemory:
    content: str
    type: str
    tags: list[str] = field(default_factory=list)
    # Task-only fields, populated when the model returns a task object.
    title: str | None = None
    priority: str | None = None
    due_date: str | None = None
    project: str | None = None
    desc: str | None = None


@dataclass
class ToolExecution:
    """A completed tool call as seen by the tool-trace hook."""

    name: str
    params: dict[str, Any] = field(default_factory=dict)
    result: str = ""
    success: bool = True
    duration_ms: int = 0


@dataclass
class SkillRecord:
    content: str
    tags: list[str]


# -- Typed extraction --------------------------------------------------------


def _to_memory(item: Any, memory_type: MemoryType) -> ExtractedMemory | None:
    if isinstance(item, str):
        if len(item) <= MIN_STRING_CHARS:
            return None
        return ExtractedMemory(
            content=item,
            type=memory_type.value,
            tags=tags_for_type(memory_type, ["typed_extraction"]),
        )
    if not isinstance(item, dict):
        return None

    content = item.get("content") or item.get("title")
    if not content or not isinstance(content, str):
        return None
    item_type = str(item.get("type") or memory_type.value)
    memory = ExtractedMemory(
        content=content,
        type=item_type,
        tags=tags_for_type(item_type, ["typed_extraction"]),
    )
    if item_type == MemoryType.TASK:
        for name in TASK_FIELDS:
            value = item.get(name)
            if value:
                setattr(memory, name, str(value))
    return memory


async def extract_typed(
    completer: Completer,
    memory_type: MemoryType,
    text: str,
) -> list[ExtractedMemory]:
    """Run one category's prompt against ``text``.

    Returns an empty list on LLM failure or unparseable output.
    """
    prompt = EXTRACTION_PROMPTS[memory_type].format(conversation=text[:MAX_CONVERSATION_CHARS])
    try:
        answer = await completer.complete(prompt, timeout=Timeouts.EXTRACTION)
    except Exception as exc:
        logger.warning("extract_typed(%s) failed: %s", memory_type, exc)
        return []

    parsed = parse_json(answer, f"{memory_type} extraction")
    if not isinstance(parsed, list):
        return []
    return [m for m in (_to_memory(item, memory_type) for item in parsed) if m is not None]


async def extract_all_typed(completer: Completer, text: str) -> list[ExtractedMemory]:
    """Detect relevant categories and extract each one independently."""
    types = detect_relevant_types(text)
    logger.info("Detected relevant memory types: %s", ", ".join(types))

    memories: list[ExtractedMemory] = []
    for memory_type in types:
        try:
            found = await extract_typed(completer, memory_type, text)
        except Exception:
            logger.exception("Failed to extract %s memories", memory_type)
            continue
        if found:
            logger.info("Extracted %d %s memories", len(found), memory_type)
            memories.extend(found)
    return memories


# -- Skill distillation ------------------------------------------------------

SKILL_PROMPT = """You are a Skill Documenter. A tool was executed successfully. Document \
this as a reusable skill if it represents a meaningful workflow.

Tool: {name}
Parameters: {params}
Result: {result}
Duration: {duration_ms}ms

IF this represents a reusable skill (not a trivial operation), return:
{{
  "isSkill": true,
  "skill": {{
    "name": "skill-name-kebab",
    "description": "One line description",
    "steps": ["Step 1", "Step 2"],
    "tools": ["tool1", "tool2"],
    "tips": ["Tip 1"]
  }}
}}

IF this is a trivial operation, return:
{{ "isSkill": false }}

Return only valid JSON."""


def is_skill_candidate(execution: ToolExecution) -> bool:
    """Successful, non-trivial calls that were slow or had substantial params."""
    if not execution.success or execution.name in SIMPLE_TOOLS:
        return False
    params_size = len(json.dumps(execution.params, default=str))
    return not (
        execution.duration_ms < SKILL_MIN_DURATION_MS and params_size < SKILL_MIN_PARAMS_CHARS
    )


def render_skill(skill: dict[str, Any], tool_name: str) -> str:
    """Markdown skill document with front matter."""
    tools = skill.get("tools") if isinstance(skill.get("tools"), list) else None
    steps = skill.get("steps") if isinstance(skill.get("steps"), list) else None
    tips = skill.get("tips") if isinstance(skill.get("tips"), list) else None

    steps_md = (
        "\n".join(f"{i}. {s}" for i, s in enumerate(steps, 1)) if steps else "1. Execute tool"
    )
    tips_md = "\n".join(f"- {t}" for t in tips) if tips else "- Check result before proceeding"
    return (
        "---\n"
        f"name: {skill.get('name', 'unnamed')}\n"
        f"description: {skill.get('description', '')}\n"
        f"tools: [{', '.join(str(t) for t in tools) if tools else tool_name}]\n"
        "---\n\n"
        f"## Steps\n{steps_md}\n\n"
        f"## Tips\n{tips_md}\n"
    )


async def extract_skill_from_tool(
    completer: Completer,
    execution: ToolExecution,
) -> SkillRecord | None:
    """Distill a tool call into a reusable skill document, or None."""
    if not is_skill_candidate(execution):
        return None

    prompt = SKILL_PROMPT.format(
        name=execution.name,
        params=json.dumps(execution.params, indent=2, default=str),
        result=str(execution.result)[:1000],
        duration_ms=execution.duration_ms,
    )
    try:
        answer = await completer.complete(prompt, timeout=Timeouts.EXTRACTION)
    except Exception as exc:
        logger.warning("extract_skill_from_tool failed: %s", exc)
        return None

    parsed = parse_json(answer, "skill extraction")
    if not isinstance(parsed, dict) or not parsed.get("isSkill"):
        return None
    skill = parsed.get("skill")
    if not isinstance(skill, dict):
        return None
    return SkillRecord(
        content=render_skill(skill, execution.name),
        tags=tags_for_type(MemoryType.SKILL, ["tool_skill", execution.name]),
    )
