"""Command execution against the static, http, exec, ai and builtin backends."""

from ashbot.executor.base import (
    BackgroundTasks,
    CommandResult,
    DispatchContext,
    Outcome,
    Replied,
    SentDirectly,
)
from ashbot.executor.executor import CommandExecutor

__all__ = [
    "BackgroundTasks",
    "CommandResult",
    "DispatchContext",
    "Outcome",
    "Replied",
    "SentDirectly",
    "CommandExecutor",
]
