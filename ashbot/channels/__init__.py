"""Chat platform channels."""

from ashbot.channels.base import BaseChannel, IncomingMessage

__all__ = ["BaseChannel", "IncomingMessage"]
