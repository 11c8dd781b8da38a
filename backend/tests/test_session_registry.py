from __future__ import annotations

import asyncio

import pytest

from ridewise.services.history import ConversationTurn
from ridewise.services.session_registry import KeyedLock, SessionNotFound, SessionRegistry


@pytest.mark.anyio
async def test_resolve_unknown_session_raises() -> None:
    registry = SessionRegistry()

    with pytest.raises(SessionNotFound):
        await registry.resolve("missing")


@pytest.mark.anyio
async def test_close_invalidates_channel_but_keeps_history(channel_factory) -> None:
    registry = SessionRegistry()
    channel = channel_factory()
    await registry.open("s1", channel)
    await registry.append_turn("s1", ConversationTurn(role="assistant", message="hi", response="hello"))

    await registry.close("s1")

    assert channel.closed is True
    assert await channel.send({"type": "complete"}) is False
    with pytest.raises(SessionNotFound):
        await registry.resolve("s1")
    history = await registry.read_history("s1")
    assert [turn.message for turn in history] == ["hi"]


@pytest.mark.anyio
async def test_reopen_replaces_channel_and_keeps_history(channel_factory) -> None:
    registry = SessionRegistry()
    first = channel_factory()
    second = channel_factory()
    await registry.open("s1", first)
    await registry.append_turn("s1", ConversationTurn(role="user", message="first"))

    await registry.open("s1", second)

    assert first.closed is True
    assert await registry.resolve("s1") is second
    assert len(await registry.read_history("s1")) == 1
    assert registry.active_count() == 1


@pytest.mark.anyio
async def test_stale_close_does_not_detach_replacement(channel_factory) -> None:
    registry = SessionRegistry()
    first = channel_factory()
    second = channel_factory()
    await registry.open("s1", first)
    await registry.open("s1", second)

    await registry.close("s1", first)

    assert await registry.resolve("s1") is second


@pytest.mark.anyio
async def test_clear_history_then_read_is_empty(channel_factory) -> None:
    registry = SessionRegistry()
    await registry.open("s1", channel_factory())
    await registry.append_turn("s1", ConversationTurn(role="user", message="one"))
    await registry.append_turn("s1", ConversationTurn(role="user", message="two"))

    await registry.clear_history("s1")

    assert await registry.read_history("s1") == []
    assert await registry.read_history("unknown") == []


@pytest.mark.anyio
async def test_recent_history_returns_tail_in_order(channel_factory) -> None:
    registry = SessionRegistry()
    await registry.open("s1", channel_factory())
    for index in range(5):
        await registry.append_turn("s1", ConversationTurn(role="user", message=f"m{index}"))

    recent = await registry.recent_history("s1", 3)

    assert [turn.message for turn in recent] == ["m2", "m3", "m4"]


@pytest.mark.anyio
async def test_shutdown_closes_all_channels(channel_factory) -> None:
    registry = SessionRegistry()
    channels = [channel_factory() for _ in range(3)]
    for index, channel in enumerate(channels):
        await registry.open(f"s{index}", channel)

    await registry.shutdown()

    assert all(channel.closed for channel in channels)
    assert registry.active_count() == 0


@pytest.mark.anyio
async def test_session_locks_are_dropped_when_idle(channel_factory) -> None:
    registry = SessionRegistry()
    for index in range(5):
        session_id = f"anon-{index}"
        await registry.open(session_id, channel_factory())
        await registry.append_turn(session_id, ConversationTurn(role="user", message="hi"))
        await registry.close(session_id)

    assert len(registry._locks) == 0


@pytest.mark.anyio
async def test_keyed_lock_serializes_one_key() -> None:
    locks = KeyedLock()
    order: list[str] = []

    async def worker(name: str) -> None:
        async with locks.hold("s1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    await asyncio.gather(worker("first"), worker("second"))

    assert order == ["first-in", "first-out", "second-in", "second-out"]
    assert len(locks) == 0
