"""Split long conversations into topic-coherent chunks before summarization."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

MIN_SEGMENT = 4
MAX_SEGMENT = 12


@dataclass(frozen=True)
class FlatMessage:
    """A conversation turn reduced to role and plain text."""

    role: str  # "user" or "assistant"
    text: str


def segment_conversation(
    flat: Sequence[FlatMessage],
    min_segment: int = MIN_SEGMENT,
    max_segment: int = MAX_SEGMENT,
) -> list[list[FlatMessage]]:
    """Partition ``flat`` into contiguous segments.

    A segment closes once it holds at least ``min_segment`` messages and
    sits on an assistant -> user turn boundary, or unconditionally at
    ``max_segment``. A trailing chunk shorter than ``min_segment`` is merged
    into the previous segment. Concatenating the result yields ``flat``.
    """
    if not flat:
        return []
    if len(flat) <= max_segment:
        return [list(flat)]

    segments: list[list[FlatMessage]] = []
    current: list[FlatMessage] = []
    for i, msg in enumerate(flat):
        current.append(msg)
        at_turn_boundary = (
            len(current) >= min_segment
            and msg.role == "assistant"
            and i + 1 < len(flat)
            and flat[i + 1].role == "user"
        )
        if at_turn_boundary or len(current) >= max_segment:
            segments.append(current)
            current = []

    if current:
        if len(current) < min_segment and segments:
            segments[-1].extend(current)
        else:
            segments.append(current)
    return segments
