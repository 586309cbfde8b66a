"""Tests for context_memory/utils.py: tag normalization, clamping, JSON columns."""

from datetime import datetime, timedelta, timezone

from context_memory.utils import (
    clamp_importance,
    ensure_parent_dir,
    normalize_tags,
    parse_json,
    serialize_json,
    tag_key,
    to_utc_iso,
    utc_now_iso,
)


class TestNormalizeTags:

    def test_example(self):
        assert normalize_tags(["Foo", "foo", " Bar ", ""]) == ["Foo", "Bar"]

    def test_idempotent(self):
        once = normalize_tags(["Work", "work", "  Urgent", "URGENT", "misc "])
        assert normalize_tags(once) == once

    def test_first_spelling_and_order_win(self):
        assert normalize_tags(["beta", "Alpha", "BETA", "alpha"]) == ["beta", "Alpha"]

    def test_empty_inputs(self):
        assert normalize_tags(None) == []
        assert normalize_tags([]) == []
        assert normalize_tags(["   ", "\t"]) == []

    def test_non_strings_dropped(self):
        assert normalize_tags(["ok", 3, None, {"a": 1}]) == ["ok"]

    def test_tag_key_is_lowercase(self):
        assert tag_key("  MiXeD ") == "mixed"


class TestClampImportance:

    def test_in_range(self):
        assert clamp_importance(7) == 7
        assert clamp_importance(0) == 0
        assert clamp_importance(10) == 10

    def test_out_of_range(self):
        assert clamp_importance(15) == 10
        assert clamp_importance(-3) == 0
        assert clamp_importance(float("inf")) == 10

    def test_missing_or_not_numeric(self):
        assert clamp_importance(None) is None
        assert clamp_importance("high") is None
        assert clamp_importance(float("nan")) is None
        assert clamp_importance(True) is None

    def test_numeric_strings_and_fractions(self):
        assert clamp_importance("4") == 4
        assert clamp_importance(6.6) == 7


class TestJsonColumns:

    def test_parse_valid(self):
        assert parse_json('["a"]', [], list) == ["a"]
        assert parse_json('{"k": 1}', {}, dict) == {"k": 1}

    def test_parse_malformed_returns_fallback(self):
        assert parse_json("not json", [], list) == []
        assert parse_json("{broken", {}, dict) == {}

    def test_parse_wrong_shape_returns_fallback(self):
        assert parse_json('{"a": 1}', [], list) == []
        assert parse_json("[1, 2]", {}, dict) == {}

    def test_parse_empty(self):
        assert parse_json(None, {}, dict) == {}
        assert parse_json("", [], list) == []

    def test_serialize_default(self):
        assert serialize_json(None, {}) == "{}"
        assert serialize_json({"a": [1]}, {}) == '{"a": [1]}'


class TestTimestamps:

    def test_utc_format(self):
        dt = datetime(2026, 3, 4, 5, 6, 7, 890000, tzinfo=timezone.utc)
        assert to_utc_iso(dt) == "2026-03-04T05:06:07.890000Z"

    def test_offset_converted_to_utc(self):
        dt = datetime(2026, 3, 4, 7, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_utc_iso(dt) == "2026-03-04T05:00:00.000000Z"

    def test_now_sorts_as_string(self):
        first = utc_now_iso()
        second = utc_now_iso()
        assert first.endswith("Z")
        assert second >= first


def test_ensure_parent_dir(tmp_path):
    target = tmp_path / "a" / "b" / "file.db"
    ensure_parent_dir(target)
    assert target.parent.is_dir()
    # existing directories are fine
    ensure_parent_dir(target)
