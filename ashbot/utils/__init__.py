"""Utility helpers for ashbot."""

from ashbot.utils.text import (
    truncate,
    truncate_text,
    strip_command_prefix,
    text_after_tokens,
    extract_json_path,
    format_posts,
    format_command_list,
    parse_duration_arg,
    local_part,
)
from ashbot.utils.media import detect_image_extension, content_type_for

__all__ = [
    "truncate",
    "truncate_text",
    "strip_command_prefix",
    "text_after_tokens",
    "extract_json_path",
    "format_posts",
    "format_command_list",
    "parse_duration_arg",
    "local_part",
    "detect_image_extension",
    "content_type_for",
]
