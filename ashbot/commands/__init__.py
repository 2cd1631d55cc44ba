"""Command catalog for ashbot."""

from ashbot.commands.catalog import (
    AiCommand,
    BuiltinCommand,
    CommandCatalog,
    CommandKind,
    CommandSpec,
    ExecCommand,
    HttpCommand,
    IOKind,
    StaticCommand,
    load_catalog,
)

__all__ = [
    "AiCommand",
    "BuiltinCommand",
    "CommandCatalog",
    "CommandKind",
    "CommandSpec",
    "ExecCommand",
    "HttpCommand",
    "IOKind",
    "StaticCommand",
    "load_catalog",
]
