"""Tests for shared helpers."""

import re

from memos_lifecycle.utils import generate_task_id, parse_json, truncate


class TestParseJson:
    def test_plain_array(self):
        assert parse_json('[{"a": 1}]') == [{"a": 1}]

    def test_markdown_fence(self):
        text = 'Here you go:\n```json\n[{"content": "x"}]\n```\nDone.'
        assert parse_json(text) == [{"content": "x"}]

    def test_trailing_commas(self):
        assert parse_json('[{"a": 1,}, {"b": 2},]') == [{"a": 1}, {"b": 2}]

    def test_smart_quotes(self):
        assert parse_json("[“hello”]") == ["hello"]

    def test_object_with_nested_arrays(self):
        text = 'Result: {"name": "deploy", "steps": ["a", "b"], "tips": []}'
        assert parse_json(text) == {"name": "deploy", "steps": ["a", "b"], "tips": []}

    def test_array_of_objects_keeps_array(self):
        assert parse_json('[{"x": 1}, {"y": 2}]') == [{"x": 1}, {"y": 2}]

    def test_nothing_parseable(self):
        assert parse_json("no json here") is None
        assert parse_json("[not, json") is None
        assert parse_json("{broken: }") is None

    def test_non_string_and_oversize(self):
        assert parse_json(None) is None
        assert parse_json("[" + "1," * 30_000 + "1]") is None


class TestTruncate:
    def test_short_string_unchanged(self):
        assert truncate("abc", 10) == "abc"

    def test_cuts_with_suffix(self):
        assert truncate("abcdef", 3) == "abc…"

    def test_serializes_non_strings(self):
        assert truncate({"k": "v"}, 100) == '{"k": "v"}'

    def test_empty(self):
        assert truncate(None, 5) == ""
        assert truncate("", 5) == ""


def test_generate_task_id_format():
    task_id = generate_task_id()
    assert re.fullmatch(r"task_\d{13}_[0-9a-z]{6}", task_id)
    assert generate_task_id() != task_id
