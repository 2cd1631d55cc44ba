"""Tests for the conversation state store."""

import asyncio

import pytest

from ashbot.auto_reply.conversation import ConversationStep, ConversationStore
from ashbot.builtins.knockknock import Joke

JOKE = Joke("Lettuce", "Lettuce in, it's cold out here!")


@pytest.mark.asyncio
async def test_begin_and_lookup():
    store = ConversationStore(ttl_seconds=60)
    await store.begin("$anchor", ConversationStep(JOKE, step=0, label="> "))

    step = await store.lookup("$anchor")

    assert step is not None
    assert step.joke == JOKE
    assert len(store) == 1
    assert await store.lookup("$other") is None
    store.close()


@pytest.mark.asyncio
async def test_take_is_destructive():
    store = ConversationStore(ttl_seconds=60)
    await store.begin("$anchor", ConversationStep(JOKE))

    first = await store.take("$anchor")
    second = await store.take("$anchor")

    assert first is not None
    assert second is None
    assert len(store) == 0
    store.close()


@pytest.mark.asyncio
async def test_end_reports_removal():
    store = ConversationStore(ttl_seconds=60)
    await store.begin("$anchor", ConversationStep(JOKE))

    assert await store.end("$anchor") is True
    assert await store.end("$anchor") is False
    store.close()


@pytest.mark.asyncio
async def test_entries_expire():
    store = ConversationStore(ttl_seconds=0.05)
    await store.begin("$anchor", ConversationStep(JOKE))

    await asyncio.sleep(0.2)

    assert await store.lookup("$anchor") is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_expiry_of_taken_entry_is_harmless():
    store = ConversationStore(ttl_seconds=0.05)
    await store.begin("$first", ConversationStep(JOKE))
    step = await store.take("$first")
    await store.begin("$second", ConversationStep(step.joke, step=1))

    await asyncio.sleep(0.02)
    assert await store.lookup("$second") is not None
    store.close()


@pytest.mark.asyncio
async def test_close_cancels_timers():
    store = ConversationStore(ttl_seconds=0.05)
    await store.begin("$anchor", ConversationStep(JOKE))

    store.close()
    await asyncio.sleep(0.1)

    assert await store.lookup("$anchor") is not None
