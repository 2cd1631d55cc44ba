"""Random quote from a room's recent history."""

import html
import time
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from ashbot.builtins.leaderboard import exclusion_filter
from ashbot.storage.store import MessageStore
from ashbot.utils.text import local_part, parse_duration_arg

DEFAULT_WINDOW_SECONDS = 24 * 3600
MIN_QUOTE_LENGTH = 5

NO_QUOTE = "no messages found to quote"


@dataclass
class Quote:
    """A quoted message."""
    sender: str
    body: str
    timestamp_ms: int


def window_seconds(args: str) -> int:
    """Parse the window argument, defaulting to 24 hours."""
    try:
        return parse_duration_arg(args)
    except ValueError:
        return DEFAULT_WINDOW_SECONDS


async def random_quote(
    store: MessageStore,
    room_id: str,
    window: int,
    label: str,
    command_prefix: str = "/bot",
    aliases: list[str] | tuple[str, ...] = (),
    now: float | None = None,
) -> Quote | None:
    """
    Pick a random human message from the last `window` seconds.

    Returns:
        The quote, or None when nothing qualifies.
    """
    cutoff_ms = int(((now or time.time()) - window) * 1000)
    where, params = exclusion_filter(label, command_prefix, aliases)
    rows = await store.query(
        "SELECT sender, body, ts_ms FROM messages "
        f"WHERE room_id = ? AND {where} AND LENGTH(body) > ? AND ts_ms >= ? "
        "ORDER BY RANDOM() LIMIT 1",
        (room_id, *params, MIN_QUOTE_LENGTH, cutoff_ms),
    )
    if not rows:
        return None
    sender, body, ts_ms = rows[0]
    return Quote(sender=sender, body=body, timestamp_ms=int(ts_ms))


def render_quote(
    quote: Quote,
    label: str,
    members: dict[str, str] | None = None,
    tz_name: str = "UTC",
) -> tuple[str, str]:
    """Render a quote as (plain, html) bodies."""
    display = (members or {}).get(quote.sender) or local_part(quote.sender)
    when = datetime.fromtimestamp(quote.timestamp_ms / 1000, ZoneInfo(tz_name))
    date = when.strftime("%d %b %Y")

    plain = f"{label}> {quote.body}\n> — {display}, {date}"
    formatted = (
        f"{html.escape(label)}<blockquote>{html.escape(quote.body)}<br>"
        f"— <i>{html.escape(display)}, {date}</i></blockquote>"
    )
    return plain, formatted
