"""Tests for text helpers."""

import pytest

from ashbot.utils.media import content_type_for, detect_image_extension
from ashbot.utils.text import (
    extract_json_path,
    format_command_list,
    format_posts,
    local_part,
    parse_duration_arg,
    strip_command_prefix,
    text_after_tokens,
    truncate,
    truncate_text,
)


class TestExtractJsonPath:
    def test_nested_key(self):
        assert extract_json_path({"a": {"b": "v"}}, "a.b") == "v"

    def test_empty_path_returns_root(self):
        root = {"a": 1}
        assert extract_json_path(root, "") is root

    def test_missing_key(self):
        assert extract_json_path({"a": 1}, "missing") is None

    def test_array_index(self):
        assert extract_json_path({"a": [1, {"b": "x"}]}, "a.1.b") == "x"

    def test_out_of_range_index(self):
        assert extract_json_path({"a": [1]}, "a.5") is None

    def test_through_scalar(self):
        assert extract_json_path({"a": "text"}, "a.b") is None

    def test_non_numeric_segment_on_array(self):
        assert extract_json_path([1, 2], "first") is None


class TestTruncateText:
    def test_short_text_unchanged(self):
        text = "a short sentence"
        assert truncate_text(text, 100) == text
        assert truncate_text(truncate_text(text, 100), 100) == text

    def test_long_text_cut_at_space(self):
        text = "word " * 2000
        result = truncate_text(text, 100)
        assert len(result) <= 400
        assert result.endswith("word")

    def test_prefers_newline_past_midpoint(self):
        text = ("x" * 300) + "\n" + ("y " * 5000)
        result = truncate_text(text, 100)
        assert result == "x" * 300

    def test_no_boundary_hard_cut(self):
        text = "z" * 10000
        assert truncate_text(text, 10) == "z" * 40


def test_truncate_marks_cut():
    assert truncate("abcdef", 3) == "abc..."
    assert truncate("abc", 3) == "abc"


class TestStripCommandPrefix:
    def test_prefix_and_command(self):
        assert strip_command_prefix("/bot gork what is life", command="gork") == "what is life"

    def test_alias(self):
        assert strip_command_prefix("@gork: explain this") == "explain this"

    def test_plain_text(self):
        assert strip_command_prefix("plain text") == "plain text"


def test_text_after_tokens_keeps_inner_spacing():
    assert text_after_tokens("/bot uwu hello   there") == "hello   there"
    assert text_after_tokens("/bot uwu") == ""


def test_format_posts_caps_list():
    posts = [{"title": f"post {i}", "url": f"https://p.test/{i}"} for i in range(8)]

    result = format_posts(posts, "https://p.test/all")

    assert result.count("- post") == 5
    assert "- post 0 (https://p.test/0)\n" in result
    assert "post 5" not in result
    assert result.endswith("\nSee full list: https://p.test/all")


def test_format_posts_skips_incomplete_entries():
    posts = [{"title": "no url"}, "junk", {"title": "ok", "url": "https://p.test/ok"}]

    result = format_posts(posts, "https://p.test/all")

    assert result.startswith("- ok (https://p.test/ok)\n")
    assert "no url" not in result
    assert result.endswith("\nSee full list: https://p.test/all")


def test_format_command_list_sorted():
    assert format_command_list(["yap", "hi", "uwu"]) == "Available commands: hi, uwu, yap"


@pytest.mark.parametrize("arg,seconds", [
    ("30s", 30),
    ("5m", 300),
    ("3h", 10800),
    ("1d", 86400),
    ("2w", 1209600),
])
def test_parse_duration(arg, seconds):
    assert parse_duration_arg(arg) == seconds


@pytest.mark.parametrize("arg", ["", "h", "3x", "-1d"])
def test_parse_duration_rejects(arg):
    with pytest.raises(ValueError):
        parse_duration_arg(arg)


def test_local_part():
    assert local_part("@alice:example.org") == "alice"
    assert local_part("bob") == "bob"


def test_image_sniffing():
    assert detect_image_extension(b"\xff\xd8\xff\xe0rest") == ".jpg"
    assert detect_image_extension(b"GIF89a....") == ".gif"
    assert detect_image_extension(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == ".webp"
    assert detect_image_extension(b"unknown") == ".png"
    assert content_type_for(b"\x89PNG\r\n\x1a\n") == "image/png"
    assert content_type_for(b"???") == "image/jpeg"
