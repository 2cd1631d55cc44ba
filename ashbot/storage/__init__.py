"""Message persistence."""

from ashbot.storage.store import MessageStore

__all__ = ["MessageStore"]
