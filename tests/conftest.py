"""
Pytest configuration and shared fixtures for ashbot tests.
"""

import itertools
import sys
import time
from dataclasses import dataclass
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ashbot.channels.base import BaseChannel, IncomingMessage  # noqa: E402
from ashbot.config.schema import BotConfig, Config, RoomConfig, StorageConfig  # noqa: E402
from ashbot.providers.base import LLMProvider  # noqa: E402
from ashbot.storage.store import MessageStore  # noqa: E402

ROOM = "!general:test"
RESTRICTED_ROOM = "!restricted:test"
QUIET_ROOM = "!quiet:test"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

_event_ids = itertools.count(1)


def now_ms() -> int:
    return int(time.time() * 1000)


def make_message(
    body: str,
    sender: str = "@alice:test",
    room_id: str = ROOM,
    event_id: str | None = None,
    reply_to: str | None = None,
    timestamp_ms: int | None = None,
    **kwargs,
) -> IncomingMessage:
    """Build an incoming text message with a fresh event ID."""
    return IncomingMessage(
        room_id=room_id,
        event_id=event_id or f"$ev{next(_event_ids)}",
        sender=sender,
        body=body,
        timestamp_ms=timestamp_ms if timestamp_ms is not None else now_ms(),
        reply_to=reply_to,
        **kwargs,
    )


@dataclass
class SentMessage:
    """A message the fake channel was asked to post."""
    room_id: str
    body: str
    reply_to: str | None
    event_id: str
    formatted_body: str | None = None
    data: bytes = b""
    content_type: str = ""
    filename: str = ""


class FakeChannel(BaseChannel):
    """In-memory chat platform that records everything sent through it."""

    name = "fake"

    def __init__(self):
        self.sent: list[SentMessage] = []
        self.images: list[SentMessage] = []
        self.messages: dict[str, IncomingMessage] = {}
        self.media: dict[str, bytes] = {}
        self.members: dict[str, str] = {}
        self._ids = itertools.count(1)

    def _next_id(self) -> str:
        return f"$bot{next(self._ids)}"

    async def send_text(self, room_id, body, reply_to=None, formatted_body=None):
        sent = SentMessage(room_id, body, reply_to, self._next_id(), formatted_body=formatted_body)
        self.sent.append(sent)
        return sent.event_id

    async def send_image(self, room_id, reply_to, data, content_type, filename="image.jpg"):
        sent = SentMessage(
            room_id, filename, reply_to, self._next_id(),
            data=data, content_type=content_type, filename=filename,
        )
        self.images.append(sent)
        return sent.event_id

    async def fetch_message(self, room_id, event_id):
        return self.messages.get(event_id)

    async def download_media(self, message):
        return self.media[message.media_url]

    async def room_members(self, room_id):
        return dict(self.members)

    @property
    def bodies(self) -> list[str]:
        return [m.body for m in self.sent]


class FakeProvider(LLMProvider):
    """Completion provider that records prompts and returns a fixed reply."""

    def __init__(self, reply: str = "42"):
        super().__init__(api_key="test")
        self.reply = reply
        self.calls: list[dict] = []

    async def complete(self, prompt, model=None, max_tokens=None):
        self.calls.append({"prompt": prompt, "model": model, "max_tokens": max_tokens})
        return self.reply


@pytest.fixture
def workspace(tmp_path):
    """Create a temporary workspace directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def store():
    """An open in-memory message store."""
    store = MessageStore(":memory:", ":memory:")
    store.open()
    yield store
    store.close()


@pytest.fixture
def config(workspace):
    """Config with an open room, a restricted room and a room without commands."""
    return Config(
        rooms=[
            RoomConfig(id=ROOM, comment="general", allowed_commands=[]),
            RoomConfig(id=RESTRICTED_ROOM, comment="restricted", allowed_commands=["ping"]),
            RoomConfig(id=QUIET_ROOM, comment="quiet"),
        ],
        storage=StorageConfig(
            links_path=str(workspace / "links.json"),
            blacklist_path=str(workspace / "blacklist.json"),
        ),
        bot=BotConfig(tmp_dir=str(workspace / "tmp")),
    )
