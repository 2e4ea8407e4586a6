"""Conversation flattening and summarization into memory entries.

Turns raw host message arrays into structured entries worth persisting
before the context window is compacted.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from memos_lifecycle.client import Timeouts
from memos_lifecycle.segmentation import FlatMessage
from memos_lifecycle.utils import parse_json

if TYPE_CHECKING:
    from memos_lifecycle.llm import Completer

logger = logging.getLogger(__name__)

MAX_CHARS_PER_MESSAGE = 2000
RECENT_TURNS = 4
MIN_TRANSCRIPT_CHARS = 50
MIN_ENTRY_CHARS = 10
COMPACTION_TAG = "compaction_summary"

# Blocks this plugin (and its siblings) inject into the conversation. They
# must not be re-extracted as if the user had said them.
INJECTION_PATTERNS = [
    re.compile(r"<user_memory_context>[\s\S]*?</user_memory_context>"),
    re.compile(r"<task_routing>[\s\S]*?</task_routing>"),
    re.compile(r"<compaction_notice>[\s\S]*?</compaction_notice>"),
    re.compile(r"<system_context>[\s\S]*?</system_context>"),
]
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")

SUMMARY_PROMPT = """You are a memory extraction system. Analyze the conversation below and \
produce a JSON array of memory entries to preserve before the context is compressed.

Each entry: {{ "content": "<fact or decision>", "tags": ["<tag1>", "<tag2>"] }}

Rules:
- Extract 3-8 entries (more for long conversations).
- Categories: decision, preference, task_progress, pending_task, technical_detail, \
personal_info, instruction.
- "content" must be a self-contained sentence, understandable without the original \
conversation.
- Include WHO, WHAT, WHEN where relevant.
- If nothing important, return [].

Conversation:
{transcript}"""


@dataclass
class SummaryEntry:
    content: str
    tags: list[str] = field(default_factory=list)


def sanitize_text(text: str) -> str:
    """Strip plugin-injected blocks from message text."""
    for pattern in INJECTION_PATTERNS:
        text = pattern.sub("", text)
    return _EXTRA_BLANK_LINES.sub("\n\n", text).strip()


def message_text(message: Any) -> str:
    """Plain text of a host message: string content or joined text blocks."""
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return " ".join(
            str(block.get("text", ""))
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        )
    return ""


def flatten_messages(
    messages: Any,
    max_chars_per_msg: int = MAX_CHARS_PER_MESSAGE,
) -> list[FlatMessage]:
    """Reduce host messages to user/assistant text turns, injections removed."""
    if not isinstance(messages, list):
        return []
    flat = []
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        role = msg.get("role")
        if role not in ("user", "assistant"):
            continue
        text = sanitize_text(message_text(msg))
        if text:
            flat.append(FlatMessage(role=role, text=text[:max_chars_per_msg]))
    return flat


def build_transcript(flat: Sequence[FlatMessage], max_chars: int = 12000) -> str:
    """Compact transcript: the last four turns in full, older ones abbreviated."""
    if not flat:
        return ""

    recent_count = min(RECENT_TURNS, len(flat))
    recent = flat[-recent_count:]
    older = flat[:-recent_count]
    recent_text = "\n\n".join(f"{m.role}: {m.text}" for m in recent)

    older_budget = max(0, max_chars - len(recent_text) - 200)
    older_text = ""
    if older and older_budget > 200:
        per_msg = max(100, older_budget // len(older))
        older_text = "\n\n".join(f"{m.role}: {m.text[:per_msg]}" for m in older)
        if len(older_text) > older_budget:
            older_text = older_text[:older_budget] + "\n[…truncated…]"

    if older_text:
        return f"[Earlier context]\n{older_text}\n\n[Recent]\n{recent_text}"
    return recent_text


def parse_summary_entries(text: str) -> list[SummaryEntry]:
    parsed = parse_json(text, "summarization")
    if not isinstance(parsed, list):
        return []
    entries = []
    for item in parsed:
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        if not isinstance(content, str) or len(content) <= MIN_ENTRY_CHARS:
            continue
        raw_tags = item.get("tags")
        tags = [t for t in raw_tags if isinstance(t, str)] if isinstance(raw_tags, list) else []
        entries.append(SummaryEntry(content=content, tags=[COMPACTION_TAG, *tags]))
    return entries


async def summarize_conversation(
    completer: Completer,
    flat: Sequence[FlatMessage],
) -> list[SummaryEntry]:
    """Summarize turns into self-contained memory entries.

    Returns an empty list when the transcript is too short or the LLM call
    or its output fails; never raises.
    """
    transcript = build_transcript(flat)
    if len(transcript) < MIN_TRANSCRIPT_CHARS:
        return []
    try:
        text = await completer.complete(
            SUMMARY_PROMPT.format(transcript=transcript),
            timeout=Timeouts.SUMMARIZE,
        )
    except Exception as exc:
        logger.warning("summarize_conversation failed: %s", exc)
        return []
    return parse_summary_entries(text)
