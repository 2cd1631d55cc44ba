"""Types shared by the command handlers."""

import asyncio
from dataclasses import dataclass
from typing import Any, Coroutine

from loguru import logger

from ashbot.channels.base import IncomingMessage


@dataclass
class DispatchContext:
    """
    Everything a handler knows about the invocation.

    Built by the dispatcher for a single message and never shared
    between dispatches.
    """
    message: IncomingMessage
    command: str
    body: str  # Normalized body (aliases rewritten to prefix form)
    args: str = ""  # Text after the command name

    @property
    def room_id(self) -> str:
        return self.message.room_id

    @property
    def sender(self) -> str:
        return self.message.sender

    @property
    def event_id(self) -> str:
        return self.message.event_id

    @property
    def reply_to(self) -> str | None:
        return self.message.reply_to


@dataclass(frozen=True)
class Replied:
    """The dispatcher should post this text as a reply."""
    text: str


@dataclass(frozen=True)
class SentDirectly:
    """The handler already posted its own output."""


Outcome = Replied | SentDirectly


@dataclass
class CommandResult:
    """Outcome of one command execution, success or failure."""
    outcome: Outcome | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def text(self) -> str:
        """Reply text, or "" when there is nothing to post."""
        if isinstance(self.outcome, Replied):
            return self.outcome.text
        return ""

    @property
    def sent_own_message(self) -> bool:
        return isinstance(self.outcome, SentDirectly)


class BackgroundTasks:
    """Tracks fire-and-forget work started by handlers."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str = "") -> asyncio.Task:
        """Start a task and keep a reference until it finishes."""
        task = asyncio.create_task(coro, name=name or None)
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task {task.get_name()} failed: {task.exception()}")

    async def drain(self) -> None:
        """Wait for every task started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)
