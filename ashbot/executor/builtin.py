"""Builtin command handler: routes to in-process routines by name."""

from typing import Awaitable, Callable

from loguru import logger

from ashbot.builtins.leaderboard import (
    NO_MESSAGES_FOR_SENDER,
    NO_MESSAGES_TODAY,
    Leaderboard,
    parse_yap_args,
    render_guess,
    render_top,
    start_of_today,
)
from ashbot.builtins.quote import NO_QUOTE, random_quote, render_quote, window_seconds
from ashbot.builtins.uwu import uwuify
from ashbot.channels.base import BaseChannel
from ashbot.commands.catalog import BuiltinCommand
from ashbot.errors import UpstreamError
from ashbot.executor.base import DispatchContext, Outcome, Replied, SentDirectly
from ashbot.storage.store import MessageStore
from ashbot.utils.text import text_after_tokens

NO_TEXT = "uwu~ pwease give me some text to twansfowm!"

# Routines that take text and return text
TEXT_ROUTINES: dict[str, Callable[[str], str]] = {
    "uwuify": uwuify,
}

ExchangeStarter = Callable[[DispatchContext], Awaitable[None]]


class BuiltinHandler:
    """
    Run builtin routines.

    Text routines transform the replied-to message or the trailing
    text. Storage routines (yap, quote) post their own formatted reply.
    """

    def __init__(
        self,
        channel: BaseChannel,
        store: MessageStore | None,
        label: str = "> ",
        bot_label: str = "",
        timezone: str = "UTC",
        command_prefix: str = "/bot",
        aliases: list[str] | tuple[str, ...] = (),
        start_exchange: ExchangeStarter | None = None,
    ):
        self.channel = channel
        self.store = store
        self.label = label
        self.bot_label = bot_label
        self.timezone = timezone
        self.command_prefix = command_prefix
        self.aliases = tuple(aliases)
        self.start_exchange = start_exchange

    async def handle(self, spec: BuiltinCommand, ctx: DispatchContext) -> Outcome:
        match spec.routine:
            case "yap":
                return await self._yap(spec, ctx)
            case "quote":
                return await self._quote(ctx)
            case "knockknock":
                if self.start_exchange is None:
                    raise UpstreamError("conversations are not available")
                await self.start_exchange(ctx)
                return SentDirectly()
            case _:
                return await self._transform(spec, ctx)

    async def _transform(self, spec: BuiltinCommand, ctx: DispatchContext) -> Outcome:
        routine = TEXT_ROUTINES.get(spec.routine)
        if routine is None:
            raise UpstreamError(f"unknown builtin: {spec.routine}")

        text = ""
        if ctx.reply_to:
            try:
                original = await self.channel.fetch_message(ctx.room_id, ctx.reply_to)
            except Exception as e:
                logger.warning(f"Failed to fetch replied-to message: {e}")
                original = None
            if original is not None:
                text = original.body
        if not text:
            text = text_after_tokens(ctx.body, 2)
        if not text:
            return Replied(NO_TEXT)
        return Replied(routine(text))

    async def _members(self, room_id: str) -> dict[str, str]:
        try:
            return await self.channel.room_members(room_id)
        except Exception as e:
            logger.warning(f"Failed to resolve members of {room_id}: {e}")
            return {}

    def _require_store(self) -> MessageStore:
        if self.store is None:
            raise UpstreamError("no database available")
        return self.store

    async def _yap(self, spec: BuiltinCommand, ctx: DispatchContext) -> Outcome:
        leaderboard = Leaderboard(
            self._require_store(),
            self.bot_label,
            command_prefix=self.command_prefix,
            aliases=self.aliases,
        )
        query = parse_yap_args(ctx.args)
        window_start = start_of_today(self.timezone)

        if query.guess is not None:
            result = await leaderboard.guess_rank(ctx.room_id, ctx.sender, query.guess, window_start)
            if result is None:
                return Replied(NO_MESSAGES_FOR_SENDER)
            await self.channel.send_text(ctx.room_id, render_guess(result, self.label), reply_to=ctx.event_id)
            return SentDirectly()

        members = await self._members(ctx.room_id)
        entries = await leaderboard.top_senders(ctx.room_id, window_start, query.limit, members)
        if not entries:
            return Replied(NO_MESSAGES_TODAY)

        plain, html = render_top(entries, self.label, mention=spec.mention)
        await self.channel.send_text(ctx.room_id, plain, reply_to=ctx.event_id, formatted_body=html)
        return SentDirectly()

    async def _quote(self, ctx: DispatchContext) -> Outcome:
        quote = await random_quote(
            self._require_store(),
            ctx.room_id,
            window_seconds(ctx.args),
            self.bot_label,
            command_prefix=self.command_prefix,
            aliases=self.aliases,
        )
        if quote is None:
            return Replied(NO_QUOTE)

        members = await self._members(ctx.room_id)
        plain, html = render_quote(quote, self.label, members, self.timezone)
        await self.channel.send_text(ctx.room_id, plain, reply_to=ctx.event_id, formatted_body=html)
        return SentDirectly()
