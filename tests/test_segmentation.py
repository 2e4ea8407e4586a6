"""Tests for conversation segmentation."""

from memos_lifecycle.segmentation import FlatMessage, segment_conversation


def _alternating(n: int) -> list[FlatMessage]:
    return [
        FlatMessage(role="user" if i % 2 == 0 else "assistant", text=f"message {i}")
        for i in range(n)
    ]


def test_empty() -> None:
    assert segment_conversation([]) == []


def test_short_conversation_is_one_segment() -> None:
    flat = _alternating(12)
    assert segment_conversation(flat) == [flat]


def test_alternating_turns_split_at_boundaries() -> None:
    flat = _alternating(20)
    segments = segment_conversation(flat)

    assert [len(s) for s in segments] == [4, 4, 4, 4, 4]
    assert [m for s in segments for m in s] == flat
    for segment in segments[:-1]:
        assert segment[-1].role == "assistant"


def test_max_segment_forces_split() -> None:
    flat = [FlatMessage(role="user", text=str(i)) for i in range(30)]
    segments = segment_conversation(flat)

    assert [len(s) for s in segments] == [12, 12, 6]
    assert [m for s in segments for m in s] == flat


def test_short_tail_merges_into_previous() -> None:
    flat = [FlatMessage(role="user", text=str(i)) for i in range(26)]
    segments = segment_conversation(flat)

    assert [len(s) for s in segments] == [12, 14]
    assert [m for s in segments for m in s] == flat


def test_segments_respect_bounds() -> None:
    roles = ["user", "user", "assistant", "user", "assistant", "assistant", "user"] * 5
    flat = [FlatMessage(role=r, text=str(i)) for i, r in enumerate(roles)]
    segments = segment_conversation(flat)

    assert [m for s in segments for m in s] == flat
    for segment in segments[:-1]:
        assert 4 <= len(segment) <= 12
