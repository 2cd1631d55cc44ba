"""Tests for the yap leaderboard and quote builtins."""

import random
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from ashbot.builtins.leaderboard import (
    MAX_LIMIT,
    GuessResult,
    Leaderboard,
    YapEntry,
    exclusion_filter,
    parse_yap_args,
    render_guess,
    render_top,
    start_of_today,
)
from ashbot.builtins.quote import Quote, random_quote, render_quote, window_seconds
from tests.conftest import ROOM, make_message, now_ms

LABEL = "> "


@pytest_asyncio.fixture
async def seeded(store):
    rows = [
        ("@alice:test", "one two three four five"),
        ("@alice:test", "one two three four five"),
        ("@bob:test", "a b c"),
        ("@bob:test", "d e f"),
        ("@carol:test", "hi"),
        ("@ash:test", "> bot output with plenty of words in it"),
        ("@carol:test", "/bot yap with extra words here"),
        ("@carol:test", "@gork what is the meaning of everything"),
    ]
    for sender, body in rows:
        await store.store_message(make_message(body, sender=sender))
    old = make_message(" ".join(["old"] * 12), sender="@dave:test", timestamp_ms=now_ms() - 3 * 86_400_000)
    await store.store_message(old)
    return store


def board(store) -> Leaderboard:
    return Leaderboard(store, LABEL, "/bot", ["@gork"])


def hour_ago() -> int:
    return now_ms() - 3_600_000


class TestRanking:
    @pytest.mark.asyncio
    async def test_top_senders_excludes_bot_and_commands(self, seeded):
        entries = await board(seeded).top_senders(ROOM, hour_ago())

        assert [(e.sender, e.words) for e in entries] == [
            ("@alice:test", 10),
            ("@bob:test", 6),
            ("@carol:test", 1),
        ]

    @pytest.mark.asyncio
    async def test_display_names_from_members(self, seeded):
        entries = await board(seeded).top_senders(ROOM, hour_ago(), members={"@alice:test": "Alice"})

        assert entries[0].display == "Alice"
        assert entries[1].display == "bob"

    @pytest.mark.asyncio
    async def test_limit(self, seeded):
        entries = await board(seeded).top_senders(ROOM, hour_ago(), limit=1)
        assert len(entries) == 1

    @pytest.mark.asyncio
    async def test_window_excludes_old_messages(self, seeded):
        entries = await board(seeded).top_senders(ROOM, now_ms() - 7 * 86_400_000)
        assert entries[0].sender == "@dave:test"

    @pytest.mark.asyncio
    async def test_other_room_is_empty(self, seeded):
        assert await board(seeded).top_senders("!elsewhere:test", hour_ago()) == []

    @pytest.mark.asyncio
    async def test_guess_too_high(self, seeded):
        result = await board(seeded).guess_rank(ROOM, "@bob:test", 1, hour_ago())

        assert result == GuessResult(guess=1, actual=2, words=6)
        assert render_guess(result, LABEL).endswith("1 position(s) lower than you thought")

    @pytest.mark.asyncio
    async def test_guess_too_low(self, seeded):
        result = await board(seeded).guess_rank(ROOM, "@bob:test", 3, hour_ago())
        assert render_guess(result, LABEL).endswith("1 position(s) higher than you thought")

    @pytest.mark.asyncio
    async def test_guess_exact(self, seeded):
        result = await board(seeded).guess_rank(ROOM, "@alice:test", 1, hour_ago())

        assert result.diff == 0
        assert "exactly right" in render_guess(result, LABEL)

    @pytest.mark.asyncio
    async def test_guess_without_messages(self, seeded):
        assert await board(seeded).guess_rank(ROOM, "@nobody:test", 1, hour_ago()) is None


def test_exclusion_filter_escapes_wildcards():
    sql, params = exclusion_filter("[50%_off] ", "/bot", ["@gork"])

    assert sql.count("NOT LIKE") == 3
    assert params[0] == "[50\\%\\_off] %"
    assert params[1] == "/bot %"


@pytest.mark.parametrize("args,limit,guess", [
    ("", 5, None),
    ("10", 10, None),
    ("0", 5, None),
    ("abc", 5, None),
    ("999", MAX_LIMIT, None),
    ("guess 3", 5, 3),
    ("guess", 5, 1),
    ("GUESS x", 5, 1),
])
def test_parse_yap_args(args, limit, guess):
    query = parse_yap_args(args)
    assert query.limit == limit
    assert query.guess == guess


def test_start_of_today():
    now = datetime(2024, 3, 5, 15, 30, tzinfo=timezone.utc)
    expected = int(datetime(2024, 3, 5, tzinfo=timezone.utc).timestamp() * 1000)
    assert start_of_today("UTC", now) == expected


def test_render_top_with_mentions():
    entries = [YapEntry("@alice:test", "Alice", 10), YapEntry("@bob:test", "bob", 6)]

    plain, html = render_top(entries, LABEL, mention=True)

    assert plain == "> top yappers (today):\n1. Alice — 10 words\n2. bob — 6 words"
    assert '<a href="https://matrix.to/#/@alice:test">Alice</a>' in html
    assert "<br>" in html


def test_render_top_escapes_display_names():
    entries = [YapEntry("@eve:test", '<img src="x">', 4)]

    plain, html = render_top(entries, LABEL, mention=True)

    assert plain.endswith('1. <img src="x"> — 4 words')
    assert "<img" not in html
    assert "&lt;img src=&quot;x&quot;&gt;</a>" in html
    assert html.startswith("&gt; top yappers")

    _, html = render_top(entries, LABEL)
    assert "1. &lt;img src=&quot;x&quot;&gt; — 4 words" in html


@pytest.mark.asyncio
async def test_quoted_replies_count_without_configured_label(store):
    await store.store_message(make_message("> <@bob:test> hi there sure thing", sender="@alice:test"))
    await store.store_message(make_message("> quoting someone", sender="@bob:test"))

    entries = await Leaderboard(store, "", "/bot").top_senders(ROOM, hour_ago())

    assert [(e.sender, e.words) for e in entries] == [("@alice:test", 6), ("@bob:test", 3)]


class TestQuote:
    @pytest.mark.asyncio
    async def test_random_quote_skips_short_and_bot_messages(self, seeded):
        quote = await random_quote(seeded, ROOM, 3600, LABEL, "/bot", ["@gork"])

        assert quote is not None
        assert quote.body in ("one two three four five",)

    @pytest.mark.asyncio
    async def test_random_quote_empty_window(self, store):
        assert await random_quote(store, ROOM, 3600, LABEL) is None

    def test_window_seconds(self):
        assert window_seconds("") == 86400
        assert window_seconds("2h") == 7200
        assert window_seconds("bogus") == 86400

    def test_render_quote_escapes_html(self):
        ts = int(datetime(2024, 3, 5, 12, tzinfo=timezone.utc).timestamp() * 1000)
        quote = Quote(sender="@alice:test", body="<b>hi</b> there", timestamp_ms=ts)

        plain, html = render_quote(quote, LABEL, {"@alice:test": "Alice"}, "UTC")

        assert plain == "> > <b>hi</b> there\n> — Alice, 05 Mar 2024"
        assert "&lt;b&gt;hi&lt;/b&gt;" in html
        assert "<blockquote>" in html


def test_uwuify_is_deterministic_with_rng():
    from ashbot.builtins.uwu import FACES, uwuify

    result = uwuify("hello world", rng=random.Random(1))

    assert result.startswith("h-hewwo wowwd")
    assert any(result.endswith(face) for face in FACES)
