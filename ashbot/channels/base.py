"""Base channel interface for chat platforms."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class IncomingMessage:
    """A decrypted room message as seen by the dispatcher."""
    room_id: str
    event_id: str
    sender: str
    body: str
    msgtype: str = "m.text"
    timestamp_ms: int = 0
    reply_to: str | None = None  # Event ID this message replies to
    media_url: str = ""  # mxc:// URI for image messages
    media_file: dict[str, Any] | None = None  # Encrypted attachment info
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_image(self) -> bool:
        """Check if the message carries an image."""
        return (
            self.msgtype in ("m.image", "m.sticker")
            or bool(self.media_url)
            or self.media_file is not None
        )


class BaseChannel(ABC):
    """
    Abstract chat platform.

    The dispatcher and command handlers only talk to the platform
    through these operations.
    """

    name: str = "base"

    @abstractmethod
    async def send_text(
        self,
        room_id: str,
        body: str,
        reply_to: str | None = None,
        formatted_body: str | None = None,
    ) -> str:
        """
        Send a text message, optionally as a reply.

        Returns:
            Event ID of the sent message.
        """
        pass

    @abstractmethod
    async def send_image(
        self,
        room_id: str,
        reply_to: str | None,
        data: bytes,
        content_type: str,
        filename: str = "image.jpg",
    ) -> str:
        """Upload image bytes and post them as a reply."""
        pass

    @abstractmethod
    async def fetch_message(self, room_id: str, event_id: str) -> IncomingMessage | None:
        """Fetch (and decrypt) a single message by event ID."""
        pass

    @abstractmethod
    async def download_media(self, message: IncomingMessage) -> bytes:
        """Download (and decrypt) the media attached to a message."""
        pass

    @abstractmethod
    async def room_members(self, room_id: str) -> dict[str, str]:
        """Get joined members as {user_id: display_name}."""
        pass
