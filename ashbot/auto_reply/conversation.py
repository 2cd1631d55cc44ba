"""
Conversation state for scripted multi-turn exchanges.

An exchange waits for a reply to a specific bot message (the anchor).
Entries are keyed by the anchor's event ID and evicted after a fixed
delay by a background timer that holds only the key.
"""

import asyncio
from dataclasses import dataclass

from loguru import logger

from ashbot.builtins.knockknock import Joke

DEFAULT_TTL_SECONDS = 300.0


@dataclass
class ConversationStep:
    """
    An in-progress knock-knock exchange.

    step 0 waits for "who's there?", step 1 waits for "<name> who?".
    """
    joke: Joke
    step: int = 0
    label: str = ""


class ConversationStore:
    """
    Lock-guarded mapping from anchor event ID to exchange state.

    At most one entry per key. `take` removes the entry it returns, so
    a duplicated delivery of the same reply cannot advance twice.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._pending: dict[str, ConversationStep] = {}
        self._lock = asyncio.Lock()
        self._timers: set[asyncio.Task] = set()

    async def begin(self, anchor_id: str, step: ConversationStep) -> None:
        """Record an exchange and schedule its eviction."""
        async with self._lock:
            self._pending[anchor_id] = step

        async def evict():
            await asyncio.sleep(self.ttl_seconds)
            if await self.end(anchor_id):
                logger.debug(f"Conversation {anchor_id} expired")

        timer = asyncio.create_task(evict())
        self._timers.add(timer)
        timer.add_done_callback(self._timers.discard)

    async def lookup(self, event_id: str) -> ConversationStep | None:
        """Get the exchange anchored at an event without removing it."""
        async with self._lock:
            return self._pending.get(event_id)

    async def take(self, event_id: str) -> ConversationStep | None:
        """Remove and return the exchange anchored at an event."""
        async with self._lock:
            return self._pending.pop(event_id, None)

    async def end(self, event_id: str) -> bool:
        """
        Drop the exchange anchored at an event.

        Returns:
            True if an entry was removed.
        """
        async with self._lock:
            return self._pending.pop(event_id, None) is not None

    def __len__(self) -> int:
        return len(self._pending)

    def close(self) -> None:
        """Cancel pending eviction timers."""
        for timer in list(self._timers):
            timer.cancel()
        self._timers.clear()
