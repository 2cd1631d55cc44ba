"""CLI commands for ashbot."""

import asyncio
import signal
import sys

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from ashbot import __logo__, __version__
from ashbot.errors import ConfigError

app = typer.Typer(
    name="ashbot",
    help=f"{__logo__} ashbot - Matrix room automation",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} ashbot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
):
    """ashbot - Matrix room automation."""
    pass


def _load(config_path: str | None):
    """Load configuration and catalog, exiting with the error on failure."""
    from ashbot.commands.catalog import load_catalog
    from ashbot.config.loader import load_config

    try:
        config = load_config(config_path)
        catalog = load_catalog(config.bot.config_path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    return config, catalog


def _describe(spec) -> str:
    """One-line summary of a command for tables."""
    from ashbot.commands.catalog import AiCommand, BuiltinCommand, ExecCommand, HttpCommand, StaticCommand

    match spec:
        case StaticCommand():
            return spec.response
        case HttpCommand():
            return f"{spec.method} {spec.url}" + (f" [{spec.json_path}]" if spec.json_path else "")
        case ExecCommand():
            return " ".join([spec.executable, *spec.args])
        case AiCommand():
            return spec.model or "default model"
        case BuiltinCommand():
            return spec.routine
    return ""


# ============================================================================
# Run
# ============================================================================


@app.command()
def run(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config.json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Connect to Matrix and start handling messages."""
    if verbose:
        logger.remove()
        logger.add(sys.stderr, level="DEBUG")

    config, catalog = _load(config_path)
    console.print(f"{__logo__} Starting ashbot as {config.matrix.user_id or '(unset)'}...")
    console.print(f"[green]✓[/green] {len(catalog)} commands loaded")
    if config.bot.dry_run:
        console.print("[yellow]Dry run: commands and hooks are disabled[/yellow]")

    asyncio.run(_serve(config, catalog))


async def _serve(config, catalog) -> None:
    from ashbot.auto_reply.dispatch import ReplyDispatcher
    from ashbot.channels.matrix import MatrixChannel
    from ashbot.links.links import LinkHandler, load_blacklist
    from ashbot.providers.litellm_provider import LiteLLMProvider
    from ashbot.storage.store import MessageStore

    store = MessageStore(config.storage.db_path, config.storage.meta_db_path)
    store.open()

    groq = config.providers.groq
    provider = LiteLLMProvider(
        api_key=groq.api_key or None,
        api_base=groq.api_base,
        default_model=groq.default_model,
        default_max_tokens=groq.default_max_tokens,
    )

    channel = MatrixChannel(config.matrix, store)
    links = LinkHandler(config, store, blacklist=load_blacklist(config.storage.blacklist_path))
    dispatcher = ReplyDispatcher(config, channel, store, catalog, provider=provider, links=links)
    channel.on_message = dispatcher.handle_message
    channel.on_ready = dispatcher.mark_ready

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    sync_task = asyncio.create_task(channel.start())
    stop_task = asyncio.create_task(stop.wait())
    try:
        done, _ = await asyncio.wait({sync_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if sync_task in done and sync_task.exception() is not None:
            logger.error(f"Matrix channel stopped: {sync_task.exception()}")
    finally:
        console.print("\nShutting down...")
        dispatcher.cancel()
        await channel.stop()
        sync_task.cancel()
        stop_task.cancel()
        await dispatcher.close()
        store.close()


# ============================================================================
# Inspection
# ============================================================================


@app.command()
def commands(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config.json"),
    room: str = typer.Option(None, "--room", "-r", help="Only commands allowed in this room"),
):
    """List the command catalog."""
    config, catalog = _load(config_path)

    names = None
    if room:
        room_config = config.find_room(room)
        if room_config is None:
            console.print(f"[red]Room {room} is not configured[/red]")
            raise typer.Exit(1)
        if room_config.allowed_commands is None:
            console.print(f"[yellow]Commands are disabled in {room_config.comment or room}[/yellow]")
            return
        names = set(catalog.list_names(room_config.allowed_commands, config.bot.greeting_command))

    table = Table(title="Commands")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("Detail")

    for name, spec in catalog.items():
        if names is not None and name not in names:
            continue
        table.add_row(name, spec.kind.value, _describe(spec))

    console.print(table)


@app.command()
def check(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config.json"),
):
    """Validate configuration and command catalog."""
    from ashbot.config.loader import get_config_path
    from ashbot.links.links import load_blacklist

    config, catalog = _load(config_path)
    try:
        blacklist = load_blacklist(config.storage.blacklist_path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"{__logo__} ashbot configuration\n")
    console.print(f"Config: {get_config_path(config_path)}")
    console.print(f"Catalog: {config.bot.config_path} [green]✓[/green] ({len(catalog)} commands)")
    console.print(f"Reply label: {config.resolve_reply_label(catalog.label)!r}")
    console.print(f"Rooms: {len(config.rooms) or 'all'}")
    console.print(f"Blacklist: {len(blacklist)} patterns")
    has_key = bool(config.providers.groq.api_key)
    console.print(f"AI provider: {'[green]✓[/green]' if has_key else '[dim]no api key[/dim]'}")


if __name__ == "__main__":
    app()
