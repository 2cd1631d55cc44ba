"""
Command detection and parsing for ashbot.

Supports:
- Prefixed commands: "/bot <name> <args...>"
- Mention aliases: "@gork <text>" is read as "/bot gork <text>"
- A default command when only the prefix is given
"""

from dataclasses import dataclass, field

from ashbot.utils.text import text_after_tokens

HELP_COMMAND = "help"


@dataclass
class Command:
    """A parsed command invocation."""
    name: str
    arguments: list[str] = field(default_factory=list)
    raw: str = ""  # Normalized body the command was parsed from

    @property
    def arg(self) -> str:
        """Get first argument or empty string."""
        return self.arguments[0] if self.arguments else ""

    @property
    def args_str(self) -> str:
        """Everything after the command name, with its inner spacing intact."""
        return text_after_tokens(self.raw, 2)


def is_command(
    text: str,
    prefix: str = "/bot",
    aliases: dict[str, str] | None = None,
) -> bool:
    """Check if a message body starts with the command prefix or an alias."""
    if prefix and text.startswith(prefix):
        return True
    return any(alias and text.startswith(alias) for alias in (aliases or {}))


def normalize_command(
    text: str,
    prefix: str = "/bot",
    aliases: dict[str, str] | None = None,
) -> str:
    """
    Rewrite an alias invocation into prefix form.

    Examples:
        "@gork what is this" -> "/bot gork what is this"
        "/bot hi" -> "/bot hi"
    """
    for alias, command in (aliases or {}).items():
        if alias and text.startswith(alias):
            rest = text[len(alias):].strip()
            return f"{prefix} {command} {rest}".strip()
    return text


def parse_command(
    text: str,
    prefix: str = "/bot",
    aliases: dict[str, str] | None = None,
    default: str = "hi",
) -> Command | None:
    """
    Parse a command from a message body.

    Examples:
        /bot -> Command(name="hi")
        /bot yap 10 -> Command(name="yap", arguments=["10"])
        @gork hello -> Command(name="gork", arguments=["hello"])

    Args:
        text: Message body.
        prefix: Command prefix.
        aliases: Mention alias -> command name.
        default: Command used when none is named.

    Returns:
        Parsed Command or None if the body is not a command.
    """
    if not is_command(text, prefix, aliases):
        return None

    normalized = normalize_command(text, prefix, aliases)
    parts = normalized.split()
    name = parts[1] if len(parts) >= 2 else default
    arguments = parts[2:] if len(parts) > 2 else []

    return Command(name=name, arguments=arguments, raw=normalized)
