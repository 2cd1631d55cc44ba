"""
Command catalog for ashbot.

Loads the command document (bot.json) once at startup and validates
every entry against its declared kind:
- static: fixed response text
- http: request a URL, optionally extract a JSON path
- exec: run a local program over temporary files
- ai: prompt a chat completion model
- builtin: run a named in-process routine

Malformed entries raise ConfigError at load, never at dispatch.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ashbot.errors import ConfigError, NotFound


class CommandKind(str, Enum):
    """Closed set of command kinds."""
    STATIC = "static"
    HTTP = "http"
    EXEC = "exec"
    AI = "ai"
    BUILTIN = "builtin"


class IOKind(str, Enum):
    """Input/output media of a command."""
    NONE = "none"
    TEXT = "text"
    IMAGE = "image"


# Names accepted by builtin entries (see ashbot.builtins)
BUILTIN_ROUTINES = frozenset({"uwuify", "yap", "quote", "knockknock"})

INPUT_PLACEHOLDER = "{input}"
OUTPUT_PLACEHOLDER = "{output}"


class _CommandBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    mention: bool = False  # Hyperlink users in ranked output


class StaticCommand(_CommandBase):
    """Reply with literal text."""
    kind: Literal[CommandKind.STATIC] = CommandKind.STATIC
    response: str


class HttpCommand(_CommandBase):
    """Fetch a URL and reply with (part of) the body."""
    kind: Literal[CommandKind.HTTP] = CommandKind.HTTP
    url: str
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    json_path: str = ""
    output_type: IOKind = IOKind.TEXT

    @model_validator(mode="after")
    def _check_image_source(self) -> "HttpCommand":
        if not self.url:
            raise ValueError("http command requires a url")
        if self.output_type == IOKind.IMAGE and not self.json_path:
            raise ValueError("image output requires json_path to locate the image url")
        return self


class ExecCommand(_CommandBase):
    """Run a local program with templated arguments."""
    kind: Literal[CommandKind.EXEC] = CommandKind.EXEC
    executable: str
    args: tuple[str, ...] = ()
    input_type: IOKind = IOKind.NONE
    output_type: IOKind = IOKind.TEXT

    @model_validator(mode="after")
    def _check_placeholders(self) -> "ExecCommand":
        if not self.executable:
            raise ValueError("exec command requires a command to run")
        if self.output_type == IOKind.IMAGE and OUTPUT_PLACEHOLDER not in self.args:
            raise ValueError(f"image output requires an {OUTPUT_PLACEHOLDER} argument")
        if self.input_type == IOKind.IMAGE and INPUT_PLACEHOLDER not in self.args:
            raise ValueError(f"image input requires an {INPUT_PLACEHOLDER} argument")
        return self


class AiCommand(_CommandBase):
    """Prompt a completion model."""
    kind: Literal[CommandKind.AI] = CommandKind.AI
    prompt: str
    model: str = ""  # Empty uses the provider default
    max_tokens: int = 0  # 0 uses the provider default

    @property
    def wants_articles(self) -> bool:
        """Whether the prompt asks for the article digest as context."""
        return "articles" in self.prompt


class BuiltinCommand(_CommandBase):
    """Run an in-process routine."""
    kind: Literal[CommandKind.BUILTIN] = CommandKind.BUILTIN
    routine: str

    @model_validator(mode="after")
    def _check_routine(self) -> "BuiltinCommand":
        if self.routine not in BUILTIN_ROUTINES:
            raise ValueError(f"unknown builtin: {self.routine}")
        return self


CommandSpec = Union[StaticCommand, HttpCommand, ExecCommand, AiCommand, BuiltinCommand]


class CommandEntry(BaseModel):
    """A raw entry of the catalog document, before kind validation."""
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    response: str = ""
    method: str = ""
    url: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    json_path: str = ""
    command: str = ""
    args: list[str] = Field(default_factory=list)
    input_type: str = ""
    output_type: str = ""
    model: str = ""
    max_tokens: int = 0
    prompt: str = ""
    mention: bool = False

    def to_spec(self, name: str) -> CommandSpec:
        """
        Convert to the typed command for its kind.

        An entry with a response is static regardless of its type.

        Raises:
            ConfigError: If required fields for the kind are missing.
        """
        try:
            if self.response:
                return StaticCommand(name=name, response=self.response, mention=self.mention)

            if self.type == CommandKind.HTTP.value:
                return HttpCommand(
                    name=name,
                    url=self.url,
                    method=(self.method or "GET").upper(),
                    headers=self.headers,
                    json_path=self.json_path,
                    output_type=self.output_type or IOKind.TEXT,
                    mention=self.mention,
                )
            if self.type == CommandKind.EXEC.value:
                return ExecCommand(
                    name=name,
                    executable=self.command,
                    args=tuple(self.args),
                    input_type=self.input_type or IOKind.NONE,
                    output_type=self.output_type or IOKind.TEXT,
                    mention=self.mention,
                )
            if self.type == CommandKind.AI.value:
                if not self.prompt:
                    raise ValueError("ai command requires a prompt")
                return AiCommand(
                    name=name,
                    prompt=self.prompt,
                    model=self.model,
                    max_tokens=self.max_tokens,
                    mention=self.mention,
                )
            if self.type == CommandKind.BUILTIN.value:
                return BuiltinCommand(name=name, routine=self.command, mention=self.mention)
        except (ValidationError, ValueError) as e:
            raise ConfigError(f"command {name!r}: {e}") from e

        raise ConfigError(f"command {name!r} has invalid type {self.type!r}")


class CommandCatalog:
    """
    Read-only mapping from command name to command description.

    Safe for concurrent reads once constructed.
    """

    def __init__(self, commands: dict[str, CommandSpec] | None = None, label: str = ""):
        self._commands: dict[str, CommandSpec] = dict(commands or {})
        self.label = label

    def __contains__(self, name: str) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)

    def get(self, name: str) -> CommandSpec | None:
        """Get a command by name, or None."""
        return self._commands.get(name)

    def resolve(self, name: str) -> CommandSpec:
        """
        Get a command by name.

        Raises:
            NotFound: If no command has that name.
        """
        spec = self._commands.get(name)
        if spec is None:
            raise NotFound(f"unknown command: {name}")
        return spec

    def list_names(
        self,
        allowed: list[str] | None = None,
        always_allowed: str = "",
    ) -> list[str]:
        """
        List command names, sorted.

        Args:
            allowed: Permission subset; when non-empty only these names
                (plus always_allowed) are listed.
            always_allowed: Reserved name included with any subset.
        """
        if allowed:
            names = set(allowed)
            if always_allowed:
                names.add(always_allowed)
            return sorted(names)
        return sorted(self._commands)

    def items(self) -> list[tuple[str, CommandSpec]]:
        """All (name, command) pairs sorted by name."""
        return sorted(self._commands.items())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommandCatalog":
        """
        Build a catalog from a parsed catalog document.

        Raises:
            ConfigError: If any entry is malformed.
        """
        if not isinstance(data, dict):
            raise ConfigError("catalog document must be an object")

        raw_commands = data.get("commands") or {}
        if not isinstance(raw_commands, dict):
            raise ConfigError("'commands' must be an object")

        commands: dict[str, CommandSpec] = {}
        for name, raw in raw_commands.items():
            if not isinstance(raw, dict):
                raise ConfigError(f"command {name!r} must be an object")
            try:
                entry = CommandEntry(**raw)
            except ValidationError as e:
                raise ConfigError(f"command {name!r}: {e}") from e
            commands[name] = entry.to_spec(name)

        label = data.get("label") or ""
        return cls(commands, label=str(label))


def load_catalog(path: str | Path) -> CommandCatalog:
    """
    Load and validate the catalog document.

    Raises:
        ConfigError: If the file cannot be read or any entry is invalid.
    """
    catalog_path = Path(path)
    try:
        data = json.loads(catalog_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"load {catalog_path}: {e}") from e

    catalog = CommandCatalog.from_dict(data)
    logger.info(f"Loaded {len(catalog)} commands from {catalog_path}")
    return catalog
