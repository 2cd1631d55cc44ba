"""
Text helpers used by command handlers.

Pure functions only: prefix stripping, token-budget truncation,
JSON-path extraction and list formatting.
"""

import re
from typing import Any

# Roughly four characters per token for budget estimates
CHARS_PER_TOKEN = 4

POSTS_LIMIT = 5

_DURATION_RE = re.compile(r"^(\d+)\s*([smhdw])$", re.IGNORECASE)
_DURATION_UNITS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 7 * 86400,
}


def truncate(text: str, max_len: int) -> str:
    """Shorten text to max_len characters, marking the cut with '...'."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def truncate_text(text: str, token_limit: int) -> str:
    """
    Truncate text to roughly fit within a token budget.

    Cuts at the last line break past the midpoint of the budget, or
    failing that at the last space past the midpoint, so words are not
    split when a boundary is available.

    Args:
        text: Text to truncate.
        token_limit: Budget in tokens.

    Returns:
        The text unchanged if it fits, otherwise a shortened prefix.
    """
    if len(text) // CHARS_PER_TOKEN <= token_limit:
        return text

    max_chars = token_limit * CHARS_PER_TOKEN
    text = text[:max_chars]

    midpoint = max_chars // 2
    last_newline = text.rfind("\n")
    if last_newline > midpoint:
        return text[:last_newline]

    last_space = text.rfind(" ")
    if last_space > midpoint:
        return text[:last_space]

    return text


def strip_command_prefix(
    body: str,
    prefix: str = "/bot",
    command: str = "",
    aliases: tuple[str, ...] | list[str] = ("@gork",),
) -> str:
    """
    Remove the command prefix (and command name) from a message body.

    Examples:
        "/bot gork what is life" -> "what is life"   (command="gork")
        "@gork: explain this" -> "explain this"
        "plain text" -> "plain text"
    """
    s = body.strip()

    if prefix and s.startswith(prefix):
        s = s[len(prefix):].strip()
        if command and (s == command or s.startswith(command + " ")):
            s = s[len(command):]
    else:
        lowered = s.lower()
        for alias in aliases:
            if alias and lowered.startswith(alias.lower()):
                s = s[len(alias):]
                break

    return s.strip().lstrip(":, ").strip()


def text_after_tokens(body: str, count: int = 2) -> str:
    """
    Get everything after the first `count` whitespace-separated tokens.

    Internal whitespace of the remainder is preserved.
    """
    parts = body.split(maxsplit=count)
    if len(parts) <= count:
        return ""
    return parts[count].strip()


def extract_json_path(root: Any, path: str) -> Any:
    """
    Extract a value from parsed JSON using a dot-separated path.

    Numeric segments index into arrays. Any traversal failure (missing
    key, wrong type, index out of range) yields None.

    Examples:
        extract_json_path({"a": {"b": "v"}}, "a.b") -> "v"
        extract_json_path({"a": [1, 2]}, "a.1") -> 2
        extract_json_path(root, "") -> root
    """
    if not path:
        return root

    current = root
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list):
            try:
                index = int(segment)
            except ValueError:
                return None
            if index < 0 or index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


def format_posts(posts: list[Any], full_list_url: str) -> str:
    """
    Render an array of post objects as a short bulleted list.

    Only the first five entries are considered; entries without both a
    title and a url are skipped.
    """
    lines = []
    for post in posts[:POSTS_LIMIT]:
        if not isinstance(post, dict):
            continue
        title = post.get("title")
        url = post.get("url")
        if isinstance(title, str) and isinstance(url, str) and title and url:
            lines.append(f"- {title} ({url})\n")
    lines.append(f"\nSee full list: {full_list_url}")
    return "".join(lines)


def format_command_list(names: list[str]) -> str:
    """Render the help line for a set of command names."""
    return "Available commands: " + ", ".join(sorted(names))


def parse_duration_arg(arg: str) -> int:
    """
    Parse a relative duration such as "3h", "1d" or "2w" into seconds.

    Raises:
        ValueError: If the argument is empty or malformed.
    """
    match = _DURATION_RE.match(arg.strip())
    if not match:
        raise ValueError(f"invalid duration: {arg!r}")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit.lower()]


def local_part(user_id: str) -> str:
    """Get the display part of a Matrix user ID (@alice:server -> alice)."""
    if user_id.startswith("@"):
        colon = user_id.find(":")
        if colon > 0:
            return user_id[1:colon]
    return user_id
