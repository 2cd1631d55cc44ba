"""
Link pass-through for ashbot.

Messages that are not commands may carry links. Each link that passes
the blacklist is delivered to the room's webhook, and the JSON link
snapshot is re-exported afterwards.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from ashbot.channels.base import IncomingMessage
from ashbot.config.schema import Config, RoomConfig
from ashbot.errors import ConfigError
from ashbot.executor.base import BackgroundTasks
from ashbot.storage.store import MessageStore

URL_RE = re.compile(r"https?://[^\s>]+", re.IGNORECASE)

HOOK_TIMEOUT_SECONDS = 30.0


def extract_links(text: str) -> list[str]:
    """Get every http(s) URL in text, in order of appearance."""
    return URL_RE.findall(text)


@dataclass
class BlacklistEntry:
    """A URL pattern that is never forwarded."""
    pattern: re.Pattern[str]
    comment: str = ""


def load_blacklist(path: str | Path) -> list[BlacklistEntry]:
    """
    Load blacklist.json: a list of {"pattern": regex, "comment": str}.

    A missing file means an empty blacklist.

    Raises:
        ConfigError: If the file is malformed or a pattern does not compile.
    """
    blacklist_path = Path(path)
    if not blacklist_path.exists():
        logger.debug(f"No blacklist at {blacklist_path}")
        return []

    try:
        data = json.loads(blacklist_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"load {blacklist_path}: {e}") from e
    if not isinstance(data, list):
        raise ConfigError(f"{blacklist_path}: expected a list of entries")

    entries = []
    for item in data:
        try:
            entries.append(BlacklistEntry(
                pattern=re.compile(item["pattern"]),
                comment=item.get("comment", ""),
            ))
        except (KeyError, TypeError, re.error) as e:
            raise ConfigError(f"{blacklist_path}: bad entry {item!r}: {e}") from e

    logger.info(f"Loaded {len(entries)} blacklist patterns")
    return entries


def is_blacklisted(url: str, blacklist: list[BlacklistEntry]) -> bool:
    """Check if a URL matches any blacklist pattern."""
    return any(entry.pattern.search(url) for entry in blacklist)


def build_hook_payload(url: str, message: IncomingMessage, room: RoomConfig) -> dict[str, Any]:
    """Build the webhook body for one link."""
    link: dict[str, Any] = {"url": url}
    if room.send_user:
        link["submittedBy"] = message.sender
    payload: dict[str, Any] = {"link": link}
    if room.send_topic and (room.id or room.comment):
        payload["room"] = {"id": room.id, "comment": room.comment}
    return payload


class LinkHandler:
    """Forward links from monitored rooms to their webhooks."""

    def __init__(
        self,
        config: Config,
        store: MessageStore,
        blacklist: list[BlacklistEntry] | None = None,
        client: httpx.AsyncClient | None = None,
        background: BackgroundTasks | None = None,
    ):
        self.config = config
        self.store = store
        self.blacklist = blacklist or []
        self.client = client or httpx.AsyncClient(timeout=HOOK_TIMEOUT_SECONDS)
        self._owns_client = client is None
        self.background = background or BackgroundTasks()

        # Stats
        self._sent_count = 0
        self._failed_count = 0

    async def handle(self, message: IncomingMessage, room: RoomConfig | None) -> int:
        """
        Process the links in a message.

        Returns:
            Number of hook deliveries started.
        """
        urls = extract_links(message.body)
        if not urls:
            return 0

        bot = self.config.bot
        if bot.opt_out_tag and bot.opt_out_tag in message.body:
            logger.debug(f"Skipping links in {message.event_id}: opt-out tag")
            return 0
        if bot.dry_run:
            logger.info(f"Dry run: not forwarding {len(urls)} link(s)")
            return 0

        started = 0
        if room is not None and room.hook:
            for url in urls:
                if is_blacklisted(url, self.blacklist):
                    logger.info(f"Skipping blacklisted link {url}")
                    continue
                self.background.spawn(self.send_hook(url, message, room), name=f"hook:{url}")
                started += 1

        await self.store.export_link_snapshot(self.config.rooms, self.config.storage.links_path)
        return started

    async def send_hook(self, url: str, message: IncomingMessage, room: RoomConfig) -> bool:
        """
        Deliver one link to the room's webhook.

        Failures are logged, never raised.
        """
        headers = {"Content-Type": "application/json"}
        if room.key:
            headers["Authorization"] = f"Bearer {room.key}"

        try:
            response = await self.client.post(
                room.hook,
                json=build_hook_payload(url, message, room),
                headers=headers,
            )
        except httpx.HTTPError as e:
            self._failed_count += 1
            logger.error(f"Failed to send hook for {url} to {room.hook}: {e}")
            return False

        if response.status_code >= 300:
            self._failed_count += 1
            logger.warning(f"Hook response not ok ({response.status_code}) for {url}")
            return False

        self._sent_count += 1
        logger.info(f"Hook sent for {url}")
        return True

    async def close(self) -> None:
        await self.background.drain()
        if self._owns_client:
            await self.client.aclose()

    def get_stats(self) -> dict[str, int]:
        """Get delivery statistics."""
        return {"sent_count": self._sent_count, "failed_count": self._failed_count}
