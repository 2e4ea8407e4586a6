"""Typed memory categories, their extraction prompts, and type detection.

- profile: stable user facts (work, location, preferences)
- behavior: recurring patterns, habits, routines
- skill: reusable workflows the agent demonstrated
- event: time-bound decisions and milestones
- task: user intentions and todo items
- fact: generic fallback when nothing specific is detected
"""

import re
from enum import StrEnum


class MemoryType(StrEnum):
    PROFILE = "profile"
    BEHAVIOR = "behavior"
    SKILL = "skill"
    EVENT = "event"
    FACT = "fact"
    TASK = "task"


BASE_TAGS: dict[MemoryType, list[str]] = {
    MemoryType.PROFILE: ["user_profile", "stable_fact"],
    MemoryType.BEHAVIOR: ["behavior_pattern", "habit"],
    MemoryType.SKILL: ["agent_skill", "workflow"],
    MemoryType.EVENT: ["event", "decision"],
    MemoryType.FACT: ["fact", "auto_capture"],
    MemoryType.TASK: ["task", "pending"],
}


def tags_for_type(memory_type: str, extra: list[str] | None = None) -> list[str]:
    """Base tags for a type (fact tags for unknown types) plus ``extra``."""
    try:
        base = BASE_TAGS[MemoryType(memory_type)]
    except ValueError:
        base = BASE_TAGS[MemoryType.FACT]
    return [*base, *(extra or [])]


# -- Detection ---------------------------------------------------------------

SKILL_MIN_TEXT_CHARS = 1000

_PROFILE = re.compile(
    r"\b(i am|i'm|i work|my name|i live|i prefer|я работаю|мне|живу|зовут)\b", re.IGNORECASE
)
_BEHAVIOR = re.compile(
    r"\b(usually|always|typically|every day|routine|habit|обычно|всегда|каждый|привычка)\b",
    re.IGNORECASE,
)
_SKILL = re.compile(
    r"\b(done|completed|finished|deployed|fixed|solved|готово|сделано|задеплоил|исправил)\b",
    re.IGNORECASE,
)
_EVENT = re.compile(
    r"\b(decided|decision|milestone|released|launched|resolved|решил|решение|релиз|запустил)\b",
    re.IGNORECASE,
)
_TASK_PHRASE = re.compile(
    r"\b(нужно сделать|надо сделать|хочу сделать|plan to|need to do|should do|want to do"
    r"|добавь задачу|создай задачу)\b",
    re.IGNORECASE,
)
# Todo markers only count on a user line, so discussing "tasks" doesn't trigger.
_TASK_USER_LINE = re.compile(r"\buser:\s*.*\b(нужно|надо|todo|сделай)\b", re.IGNORECASE)


def detect_relevant_types(text: str) -> list[MemoryType]:
    """Pick the categories plausibly present in ``text``; fact if none match."""
    lowered = text.lower()
    types: list[MemoryType] = []
    if _PROFILE.search(lowered):
        types.append(MemoryType.PROFILE)
    if _BEHAVIOR.search(lowered):
        types.append(MemoryType.BEHAVIOR)
    if _SKILL.search(lowered) and len(text) > SKILL_MIN_TEXT_CHARS:
        types.append(MemoryType.SKILL)
    if _EVENT.search(lowered):
        types.append(MemoryType.EVENT)
    if _TASK_PHRASE.search(lowered) or _TASK_USER_LINE.search(lowered):
        types.append(MemoryType.TASK)
    if not types:
        types.append(MemoryType.FACT)
    return types


# -- Prompts -----------------------------------------------------------------

EXTRACTION_PROMPTS: dict[MemoryType, str] = {
    MemoryType.PROFILE: """You are a User Profile Extractor. Extract ONLY stable facts about the user.

EXTRACT:
- Basic info: age, occupation, location, timezone
- Preferences: language, communication style, tools
- Stable traits: expertise areas, roles, responsibilities

DO NOT EXTRACT:
- Temporary states or moods
- One-time events
- Assistant suggestions or opinions
- Anything not directly stated by user

RULES:
- Use "The user" to refer to the user
- Each fact must be self-contained and understandable alone
- Keep each fact under 30 words
- Return JSON array of strings. Empty array [] if nothing.

Max 3 facts.

Conversation:
{conversation}""",
    MemoryType.BEHAVIOR: """You are a Behavior Pattern Extractor. Extract ONLY recurring patterns and habits.

EXTRACT:
- Regular routines: daily habits, workflows
- Problem-solving approaches: how user typically handles issues
- Tool usage patterns: preferred tools and methods
- Communication patterns: when/how user prefers to work

DO NOT EXTRACT:
- One-time actions
- User profile facts (age, job)
- Specific events with dates
- Assistant suggestions

RULES:
- Focus on "typically", "usually", "always" behaviors
- Each pattern must be actionable and reusable
- Keep each under 50 words
- Return JSON array of strings. Empty array [] if nothing.

Max 3 patterns.

Conversation:
{conversation}""",
    MemoryType.SKILL: """You are a Skill Documentation Extractor. Extract skills the agent demonstrated successfully.

EXTRACT skills when:
- A complex task was completed successfully
- A multi-step workflow was executed
- A problem was solved with reusable approach
- Tools were orchestrated effectively

SKILL FORMAT (markdown):
---
name: skill-name-kebab-case
description: One-line what this skill does
demonstrated-in: [context]
---

## When to Use
- Situation 1
- Situation 2

## Steps
1. Step one
2. Step two
3. Step three

## Key Takeaways
- Insight 1
- Insight 2

DO NOT EXTRACT:
- Simple actions (reading files, sending messages)
- Failed attempts
- Incomplete tasks

Return JSON array with objects: {{"type": "skill", "content": "<full markdown skill>"}}
Empty array [] if no notable skills.

Max 1 skill per conversation.

Conversation:
{conversation}""",
    MemoryType.EVENT: """You are an Event Extractor. Extract significant events and decisions.

EXTRACT:
- Decisions made with reasoning
- Completed milestones
- Configuration changes
- Deployments or releases
- Problems resolved

INCLUDE for each event:
- WHAT happened
- WHEN (relative date/time if mentioned)
- WHY (reasoning if available)
- OUTCOME

DO NOT EXTRACT:
- Routine actions without significance
- Ongoing tasks without resolution
- User profile facts

RULES:
- Each event must have a clear outcome
- Include context for future reference
- Keep under 100 words each
- Return JSON array of strings. Empty array [] if nothing.

Max 2 events.

Conversation:
{conversation}""",
    MemoryType.FACT: """You are a Fact Extractor. Extract important facts worth remembering long-term.

EXTRACT:
- User preferences and habits
- Important decisions made
- Technical details about projects
- Key information explicitly stated

DO NOT EXTRACT:
- Greetings, acknowledgments
- Temporary states
- Assistant's own responses
- System messages

RULES:
- Each fact must be self-contained
- Keep each under 50 words
- Return JSON array of strings. Empty array [] if nothing.

Max 3 facts.

Conversation:
{conversation}""",
    MemoryType.TASK: """You are a Task Extractor. Identify tasks or intentions the user mentioned.

EXTRACT when user says:
- "нужно сделать...", "надо...", "хочу сделать..."
- "need to...", "should...", "want to...", "plan to..."
- Explicit todo items or action items
- Clear intentions to do something

Return JSON array of objects with these fields:
{{
  "title": "Task name (short, actionable)",
  "desc": "Details if any (optional, omit if none)",
  "priority": "P0 | P1 | P2",
  "due_date": "YYYY-MM-DD or text like 'Friday' (optional, omit if none)",
  "project": "Project name if mentioned (optional, omit if none)"
}}

Priority guide:
- P0: Urgent, blocking, deadline today
- P1: Important, should do this week
- P2: Nice to have, no deadline

DO NOT EXTRACT:
- Tasks already completed
- Vague wishes without clear action
- Assistant suggestions (unless user confirms)

RULES:
- Each task must be actionable
- Return JSON array of objects. Empty array [] if nothing.

Max 2 tasks.

Conversation:
{conversation}""",
}
