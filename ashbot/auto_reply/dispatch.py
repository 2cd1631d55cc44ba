"""
Reply dispatcher for ashbot.

Routes every incoming room message:
1. Ignored: unmonitored room, or the bot's own output (configured reply label)
2. Conversation: a reply to a pending knock-knock anchor
3. Command: prefix or mention alias in a room with a command policy
4. Pass-through: link handling

Messages are persisted and classified in order of arrival. Command
execution runs in its own task, gated on the ready signal (initial
sync replayed) and abandoned if shutdown is signalled first.
"""

import asyncio
import random
from enum import Enum
from typing import Any

import httpx
from loguru import logger

from ashbot.auto_reply.commands import HELP_COMMAND, Command, is_command, parse_command
from ashbot.auto_reply.conversation import ConversationStep, ConversationStore
from ashbot.builtins.knockknock import name_line, opener_line, pick_joke, punchline_line
from ashbot.channels.base import BaseChannel, IncomingMessage
from ashbot.commands.catalog import CommandCatalog
from ashbot.config.schema import Config, RoomConfig
from ashbot.errors import NotFound, PermissionDenied
from ashbot.executor.base import BackgroundTasks, DispatchContext
from ashbot.executor.executor import CommandExecutor
from ashbot.links.links import LinkHandler, extract_links
from ashbot.providers.base import LLMProvider
from ashbot.storage.store import MessageStore
from ashbot.utils.text import format_command_list, truncate

NOT_ALLOWED = "command not allowed in this room"
NO_CATALOG = "no bot configuration loaded"
UNKNOWN_COMMAND = "Unknown command. "


class Route(str, Enum):
    """How a message was classified."""
    IGNORED = "ignored"
    CONVERSATION = "conversation"
    COMMAND = "command"
    PASS_THROUGH = "pass_through"


class ReplyDispatcher:
    """
    Classifies messages and runs commands and conversations.

    Flow:
    1. Persist the message
    2. Drop bot output
    3. Continue a pending conversation
    4. Dispatch a command
    5. Hand everything else to the link handler
    """

    def __init__(
        self,
        config: Config,
        channel: BaseChannel,
        store: MessageStore,
        catalog: CommandCatalog | None,
        provider: LLMProvider | None = None,
        links: LinkHandler | None = None,
        conversations: ConversationStore | None = None,
        executor: CommandExecutor | None = None,
        rng: random.Random | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.channel = channel
        self.store = store
        self.catalog = catalog
        self.links = links
        self.rng = rng
        catalog_label = catalog.label if catalog else ""
        self.label = config.resolve_reply_label(catalog_label)
        self.bot_label = config.explicit_reply_label(catalog_label)
        self.conversations = conversations or ConversationStore(config.bot.state_ttl_seconds)
        self.executor = executor or CommandExecutor(
            channel,
            config.bot,
            label=self.label,
            bot_label=self.bot_label,
            store=store,
            provider=provider,
            client=client,
            start_exchange=self.start_knockknock,
        )

        self.ready = asyncio.Event()
        self.cancelled = asyncio.Event()
        self.background = BackgroundTasks()

        # Stats
        self._routes: dict[str, int] = {route.value: 0 for route in Route}

    def mark_ready(self) -> None:
        """Open the command gate (initial sync finished)."""
        if not self.ready.is_set():
            logger.info("Dispatcher ready, commands enabled")
        self.ready.set()

    def cancel(self) -> None:
        """Abandon every command that has not started executing."""
        self.cancelled.set()

    async def handle_message(self, message: IncomingMessage) -> Route:
        """
        Persist and route one incoming message.

        Returns:
            The route taken.
        """
        route = await self._route(message)
        self._routes[route.value] += 1
        return route

    async def _route(self, message: IncomingMessage) -> Route:
        if not self.config.is_monitored(message.room_id):
            return Route.IGNORED
        room = self.config.find_room(message.room_id)

        try:
            await self.store.store_message(message, extract_links(message.body))
        except Exception as e:
            logger.error(f"Failed to store event {message.event_id}: {e}")
            return Route.IGNORED
        room_name = room.comment if room and room.comment else message.room_id
        logger.info(f"[{room_name}] {message.sender}: {truncate(message.body, 100)}")

        if self.bot_label and self.bot_label in message.body:
            logger.debug("Skipped bot processing due to bot reply label")
            return Route.IGNORED

        if message.reply_to and await self.conversations.lookup(message.reply_to):
            step = await self.conversations.take(message.reply_to)
            if step is not None:
                self.background.spawn(
                    self.continue_knockknock(message, step),
                    name=f"knockknock:{message.event_id}",
                )
            return Route.CONVERSATION

        bot = self.config.bot
        if (
            room is not None
            and room.allowed_commands is not None
            and is_command(message.body, bot.command_prefix, bot.mention_aliases)
        ):
            if bot.dry_run:
                logger.info("Dry run: skipping bot command")
                return Route.COMMAND
            self.background.spawn(
                self.run_command(message, room),
                name=f"command:{message.event_id}",
            )
            return Route.COMMAND

        if self.links is not None:
            await self.links.handle(message, room)
        return Route.PASS_THROUGH

    async def wait_ready(self) -> bool:
        """
        Wait until commands may run.

        Returns:
            False if cancellation came first.
        """
        if self.cancelled.is_set():
            return False
        if self.ready.is_set():
            return True

        ready = asyncio.ensure_future(self.ready.wait())
        cancelled = asyncio.ensure_future(self.cancelled.wait())
        try:
            await asyncio.wait({ready, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            ready.cancel()
            cancelled.cancel()
        return self.ready.is_set() and not self.cancelled.is_set()

    def check_permission(self, command: str, room: RoomConfig) -> None:
        """
        Apply the room's allow-list.

        Raises:
            PermissionDenied: If the list is non-empty and excludes the command.
        """
        allowed = room.allowed_commands
        if allowed and command not in allowed and command != self.config.bot.greeting_command:
            raise PermissionDenied(NOT_ALLOWED)

    def help_text(self, room: RoomConfig) -> str:
        """Render the command list visible in a room."""
        names = self.catalog.list_names(room.allowed_commands, self.config.bot.greeting_command)
        return format_command_list(names)

    def parse(self, body: str) -> Command | None:
        bot = self.config.bot
        return parse_command(body, bot.command_prefix, bot.mention_aliases, bot.greeting_command)

    async def run_command(self, message: IncomingMessage, room: RoomConfig) -> None:
        """Gate, resolve and execute one command, then post its reply."""
        if not await self.wait_ready():
            logger.debug(f"Dispatch of {message.event_id} abandoned")
            return

        command = self.parse(message.body)
        if command is None:
            return
        name = command.name

        try:
            self.check_permission(name, room)
        except PermissionDenied as e:
            await self.send_reply(message, str(e), name)
            return

        if self.catalog is None:
            await self.send_reply(message, NO_CATALOG, name)
            return

        if name == HELP_COMMAND:
            await self.send_reply(message, self.help_text(room), name)
            return

        spec = self.catalog.get(name)
        if spec is None:
            await self.send_reply(message, UNKNOWN_COMMAND + self.help_text(room), name)
            return

        if self.cancelled.is_set():
            return

        logger.info(f"Dispatching {name} for {message.sender}")
        ctx = DispatchContext(message=message, command=name, body=command.raw, args=command.args_str)
        result = await self.executor.execute(spec, ctx)

        if result.error is not None:
            if isinstance(result.error, NotFound):
                body = str(result.error)
            else:
                body = f"sorry, couldn't execute {name} right now"
        elif result.sent_own_message:
            return
        else:
            body = result.text
            if not body:
                logger.debug(f"Command {name} produced no output")
                return

        await self.send_reply(message, body, name)

    async def send_reply(self, message: IncomingMessage, body: str, command: str) -> None:
        """Post label + body as a reply to the message."""
        try:
            await self.channel.send_text(message.room_id, self.label + body, reply_to=message.event_id)
        except Exception as e:
            logger.error(f"Failed to send bot response for {command}: {e}")
            return
        logger.info(f"Sent bot response for {command}")

    async def start_knockknock(self, ctx: DispatchContext) -> None:
        """Post the opener and wait for a reply to it."""
        joke = pick_joke(self.rng)
        anchor = await self.channel.send_text(
            ctx.room_id,
            opener_line(self.label),
            reply_to=ctx.event_id,
        )
        await self.conversations.begin(anchor, ConversationStep(joke=joke, step=0, label=self.label))

    async def continue_knockknock(self, message: IncomingMessage, step: ConversationStep) -> None:
        """Advance an exchange whose anchor was just replied to."""
        try:
            if step.step == 0:
                anchor = await self.channel.send_text(
                    message.room_id,
                    name_line(step.joke, step.label),
                    reply_to=message.event_id,
                )
                await self.conversations.begin(
                    anchor,
                    ConversationStep(joke=step.joke, step=1, label=step.label),
                )
            else:
                await self.channel.send_text(
                    message.room_id,
                    punchline_line(step.joke, step.label),
                    reply_to=message.event_id,
                )
        except Exception as e:
            logger.error(f"Failed to continue knock knock: {e}")

    async def drain(self) -> None:
        """Wait for all in-flight dispatches and their side effects."""
        await self.background.drain()
        await self.executor.background.drain()
        if self.links is not None:
            await self.links.background.drain()

    async def close(self) -> None:
        """Stop accepting work and release resources."""
        self.cancel()
        self.conversations.close()
        await self.drain()
        await self.executor.close()
        if self.links is not None:
            await self.links.close()

    def get_stats(self) -> dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "routes": dict(self._routes),
            "pending_conversations": len(self.conversations),
            "executor": self.executor.get_stats(),
            "ready": self.ready.is_set(),
        }
