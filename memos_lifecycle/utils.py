"""Small helpers shared across modules."""

import json
import logging
import random
import re
import string
import time
from typing import Any

logger = logging.getLogger(__name__)

MAX_PARSE_CHARS = 50_000

_ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BASE36 = string.digits + string.ascii_lowercase


def parse_json(text: Any, context: str = "JSON") -> Any:
    """Parse JSON out of LLM output, tolerating common artifacts.

    Picks the outermost ``[...]`` or ``{...}`` span, whichever opens first,
    which also strips markdown fences and surrounding prose. On a first
    failure, retries with trailing commas removed and smart quotes replaced.

    Returns:
        The parsed value, or None if nothing usable was found.
    """
    if not isinstance(text, str) or len(text) > MAX_PARSE_CHARS:
        return None
    spans = [m for m in (_ARRAY_SPAN.search(text), _OBJECT_SPAN.search(text)) if m]
    if not spans:
        return None
    match = min(spans, key=lambda m: m.start())
    raw = match.group(0)
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        pass

    cleaned = _TRAILING_COMMA.sub(r"\1", raw)
    cleaned = cleaned.replace("“", '"').replace("”", '"')
    cleaned = cleaned.replace("‘", "'").replace("’", "'")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Could not parse %s", context)
        return None


def truncate(value: Any, max_len: int, suffix: str = "…") -> str:
    """Stringify ``value`` (JSON for non-strings) and cut it to ``max_len``."""
    if value is None or value == "":
        return ""
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
    return text[:max_len] + suffix if len(text) > max_len else text


def generate_task_id() -> str:
    """Return an opaque task id such as ``task_1738900000000_a1b2c3``."""
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(_BASE36, k=6))
    return f"task_{millis}_{suffix}"
