"""Tests for PluginState windows and throttles."""

from memos_lifecycle.state import PluginState


def test_post_compaction_window(state: PluginState, clock) -> None:
    assert not state.is_post_compaction()
    state.mark_compacted()
    clock.advance(119)
    assert state.is_post_compaction()
    clock.advance(2)
    assert not state.is_post_compaction()


def test_extraction_throttle(state: PluginState, clock) -> None:
    assert state.try_start_extraction()
    clock.advance(100)
    assert not state.try_start_extraction()
    clock.advance(201)
    assert state.try_start_extraction()


def test_todo_cooldown(state: PluginState, clock) -> None:
    assert state.todo_remind_due()
    state.mark_todo_reminded()
    clock.advance(1800)
    assert not state.todo_remind_due()
    clock.advance(1)
    assert state.todo_remind_due()


def test_skill_cooldown_is_per_tool(state: PluginState, clock) -> None:
    state.mark_skill_extracted("exec")
    assert not state.skill_extraction_due("exec")
    assert state.skill_extraction_due("browser")
    clock.advance(601)
    assert state.skill_extraction_due("exec")


def test_skill_map_sweeps_stale_entries(state: PluginState, clock) -> None:
    for i in range(100):
        state.mark_skill_extracted(f"tool_{i}")
    clock.advance(700)
    state.mark_skill_extracted("fresh")
    assert list(state.skill_extracted_at) == ["fresh"]


def test_dedup_shares_clock(clock) -> None:
    state = PluginState(clock=clock)
    text = "The user keeps backups on a NAS"
    state.dedup.mark_added(text)
    clock.advance(301)
    assert not state.dedup.is_duplicate(text)


def test_instances_are_isolated() -> None:
    a, b = PluginState(), PluginState()
    a.mark_compacted()
    assert a.is_post_compaction()
    assert not b.is_post_compaction()
    assert a.dedup is not b.dedup
