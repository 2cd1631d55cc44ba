"""
Yap leaderboard: per-sender word counts for a room.

Rankings are recomputed from the message store on every query. Word
count is the number of space-separated tokens in each message body.
Bot output (messages starting with an explicitly configured reply
label) and command invocations are excluded.
"""

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Any
from zoneinfo import ZoneInfo

from ashbot.storage.store import MessageStore
from ashbot.utils.text import local_part

DEFAULT_LIMIT = 5
MAX_LIMIT = 50

NO_MESSAGES_TODAY = "no messages found today"
NO_MESSAGES_FOR_SENDER = "you have no messages today!"

_WORD_COUNT_SQL = "SUM(LENGTH(body) - LENGTH(REPLACE(body, ' ', '')) + 1)"


@dataclass
class YapEntry:
    """One ranked sender."""
    sender: str
    display: str
    words: int


@dataclass
class GuessResult:
    """Outcome of a rank guess."""
    guess: int
    actual: int
    words: int

    @property
    def diff(self) -> int:
        """Negative when the sender actually ranks lower than guessed."""
        return self.guess - self.actual


@dataclass
class YapQuery:
    """Parsed arguments of the yap command."""
    limit: int = DEFAULT_LIMIT
    guess: int | None = None


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped + "%"


def exclusion_filter(
    label: str,
    command_prefix: str = "/bot",
    aliases: list[str] | tuple[str, ...] = (),
) -> tuple[str, list[Any]]:
    """
    Build the WHERE fragment that drops bot output and command messages.

    Returns:
        (sql, params) to be AND-ed into a messages query.
    """
    clauses = ["msgtype = 'm.text'"]
    params: list[Any] = []
    prefixes = [label]
    if command_prefix:
        prefixes.append(command_prefix + " ")
    prefixes.extend(aliases)
    for prefix in prefixes:
        if not prefix:
            continue
        clauses.append("body NOT LIKE ? ESCAPE '\\'")
        params.append(_like_prefix(prefix))
    return " AND ".join(clauses), params


def start_of_today(tz_name: str = "UTC", now: datetime | None = None) -> int:
    """Midnight of the current day in the given timezone, as Unix millis."""
    tz = ZoneInfo(tz_name)
    now = (now or datetime.now(tz)).astimezone(tz)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def parse_yap_args(args: str) -> YapQuery:
    """
    Parse "N" (list size) or "guess N" (rank guess).

    Non-numeric or non-positive numbers fall back to the defaults.
    """
    trimmed = args.strip()
    if trimmed.lower().startswith("guess"):
        guess = 1
        rest = trimmed[len("guess"):].strip()
        if rest.isdigit() and int(rest) > 0:
            guess = int(rest)
        return YapQuery(guess=guess)

    limit = DEFAULT_LIMIT
    if trimmed.isdigit() and int(trimmed) > 0:
        limit = int(trimmed)
    return YapQuery(limit=min(limit, MAX_LIMIT))


class Leaderboard:
    """Word-count ranking queries over the message store."""

    def __init__(
        self,
        store: MessageStore,
        label: str,
        command_prefix: str = "/bot",
        aliases: list[str] | tuple[str, ...] = (),
    ):
        self.store = store
        self.label = label
        self.command_prefix = command_prefix
        self.aliases = tuple(aliases)

    async def _ranking(
        self,
        room_id: str,
        window_start_ms: int,
        limit: int | None = None,
    ) -> list[tuple[str, int]]:
        where, params = exclusion_filter(self.label, self.command_prefix, self.aliases)
        sql = (
            f"SELECT sender, {_WORD_COUNT_SQL} AS word_count FROM messages "
            f"WHERE room_id = ? AND ts_ms >= ? AND {where} "
            "GROUP BY sender ORDER BY word_count DESC, sender ASC"
        )
        all_params: list[Any] = [room_id, window_start_ms, *params]
        if limit is not None:
            sql += " LIMIT ?"
            all_params.append(limit)
        rows = await self.store.query(sql, tuple(all_params))
        return [(sender, int(count or 0)) for sender, count in rows]

    async def top_senders(
        self,
        room_id: str,
        window_start_ms: int,
        limit: int = DEFAULT_LIMIT,
        members: dict[str, str] | None = None,
    ) -> list[YapEntry]:
        """
        Rank senders by word count since window_start_ms.

        Args:
            room_id: Room to rank.
            window_start_ms: Inclusive lower bound on message timestamps.
            limit: Number of entries, capped at 50.
            members: Current display names keyed by user ID.

        Returns:
            Entries ordered by descending word count.
        """
        limit = max(1, min(limit, MAX_LIMIT))
        members = members or {}
        ranking = await self._ranking(room_id, window_start_ms, limit)
        return [
            YapEntry(sender=sender, display=members.get(sender) or local_part(sender), words=words)
            for sender, words in ranking
        ]

    async def guess_rank(
        self,
        room_id: str,
        sender: str,
        guess: int,
        window_start_ms: int,
    ) -> GuessResult | None:
        """
        Compare a guessed rank against the sender's actual rank.

        Returns:
            The comparison, or None when the sender has no qualifying
            messages in the window.
        """
        ranking = await self._ranking(room_id, window_start_ms)
        for position, (ranked_sender, words) in enumerate(ranking, start=1):
            if ranked_sender == sender:
                return GuessResult(guess=guess, actual=position, words=words)
        return None


def render_top(entries: list[YapEntry], label: str, mention: bool = False) -> tuple[str, str]:
    """
    Render the leaderboard as (plain, html) bodies.

    With mention set, the HTML body links each user to their profile.
    """
    header = f"{label}top yappers (today):"
    plain = [header]
    html = [escape(header)]
    for i, entry in enumerate(entries, start=1):
        plain.append(f"{i}. {entry.display} — {entry.words} words")
        display = escape(entry.display)
        if mention:
            who = f'<a href="https://matrix.to/#/{escape(entry.sender)}">{display}</a>'
        else:
            who = display
        html.append(f"{i}. {who} — {entry.words} words")
    return "\n".join(plain), "<br>".join(html)


def render_guess(result: GuessResult, label: str) -> str:
    """Render a rank guess outcome."""
    if result.diff == 0:
        return f"{label}you guessed #{result.guess} — that's exactly right! ({result.words} words)"
    direction = "lower" if result.diff < 0 else "higher"
    return (
        f"{label}you guessed #{result.guess} but you're actually #{result.actual} "
        f"({result.words} words) — {abs(result.diff)} position(s) {direction} than you thought"
    )
