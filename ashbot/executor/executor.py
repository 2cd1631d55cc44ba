"""
Command executor.

Runs a resolved command against its backend and always returns a
CommandResult: handler exceptions are captured in the result so
nothing propagates back into the dispatcher.
"""

import time

import httpx
from loguru import logger

from ashbot.channels.base import BaseChannel
from ashbot.commands.catalog import (
    AiCommand,
    BuiltinCommand,
    CommandSpec,
    ExecCommand,
    HttpCommand,
    StaticCommand,
)
from ashbot.config.schema import BotConfig
from ashbot.executor.ai import AiHandler
from ashbot.executor.base import BackgroundTasks, CommandResult, DispatchContext, Outcome, Replied
from ashbot.executor.builtin import BuiltinHandler, ExchangeStarter
from ashbot.executor.fetch import HttpHandler
from ashbot.executor.process import ExecHandler
from ashbot.providers.base import LLMProvider
from ashbot.storage.store import MessageStore


class CommandExecutor:
    """
    Executes catalog commands.

    One handler per command kind; the kind is matched exhaustively in
    `_run`.
    """

    def __init__(
        self,
        channel: BaseChannel,
        bot_config: BotConfig | None = None,
        label: str = "> ",
        bot_label: str = "",
        store: MessageStore | None = None,
        provider: LLMProvider | None = None,
        client: httpx.AsyncClient | None = None,
        start_exchange: ExchangeStarter | None = None,
    ):
        self.bot_config = bot_config or BotConfig()
        self.label = label
        self.background = BackgroundTasks()
        self.client = client or httpx.AsyncClient(follow_redirects=True)
        self._owns_client = client is None

        cfg = self.bot_config
        aliases = tuple(cfg.mention_aliases)
        self.http = HttpHandler(
            self.client,
            channel,
            self.background,
            timeout=cfg.http_timeout_seconds,
            linkstash_url=cfg.linkstash_url,
        )
        self.exec = ExecHandler(channel, tmp_dir=cfg.tmp_dir, timeout=cfg.exec_timeout_seconds)
        self.ai = AiHandler(
            provider,
            channel,
            self.client,
            label=label,
            articles_url=cfg.articles_url,
            command_prefix=cfg.command_prefix,
            aliases=aliases,
        ) if provider is not None else None
        self.builtin = BuiltinHandler(
            channel,
            store,
            label=label,
            bot_label=bot_label,
            timezone=cfg.timezone,
            command_prefix=cfg.command_prefix,
            aliases=aliases,
            start_exchange=start_exchange,
        )

        # Stats
        self._executed_count = 0
        self._error_count = 0

    async def execute(self, spec: CommandSpec, ctx: DispatchContext) -> CommandResult:
        """
        Execute a command.

        Args:
            spec: The resolved command.
            ctx: The invocation.

        Returns:
            The outcome, or the error that prevented one.
        """
        self._executed_count += 1
        start = time.time()
        try:
            outcome = await self._run(spec, ctx)
        except Exception as e:
            self._error_count += 1
            logger.error(f"Command {spec.name} failed: {e}")
            return CommandResult(error=e)

        logger.debug(f"Command {spec.name} finished in {(time.time() - start) * 1000:.0f}ms")
        return CommandResult(outcome=outcome)

    async def _run(self, spec: CommandSpec, ctx: DispatchContext) -> Outcome:
        match spec:
            case StaticCommand():
                return Replied(spec.response)
            case HttpCommand():
                return await self.http.handle(spec, ctx)
            case ExecCommand():
                return await self.exec.handle(spec, ctx)
            case AiCommand():
                if self.ai is None:
                    raise RuntimeError("no completion provider configured")
                return await self.ai.handle(spec, ctx)
            case BuiltinCommand():
                return await self.builtin.handle(spec, ctx)
            case _:
                raise TypeError(f"unhandled command kind: {type(spec).__name__}")

    async def close(self) -> None:
        """Wait for background work and release the HTTP client."""
        await self.background.drain()
        if self._owns_client:
            await self.client.aclose()

    def get_stats(self) -> dict[str, int]:
        """Get executor statistics."""
        return {
            "executed_count": self._executed_count,
            "error_count": self._error_count,
            "background_tasks": len(self.background),
        }
