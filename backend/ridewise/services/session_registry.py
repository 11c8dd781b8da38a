from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from fastapi import Request

from ridewise.services.channels import EventChannel
from ridewise.services.history import ConversationTurn, HistoryManager

logger = logging.getLogger(__name__)


class SessionNotFound(LookupError):
    """Raised when a session id has no live delivery channel."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Client stream not found: {session_id}")
        self.session_id = session_id


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedLock:
    """One ``asyncio.Lock`` per key, dropped once no task holds or awaits it."""

    def __init__(self) -> None:
        self._entries: dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        # Bookkeeping never awaits, so it cannot interleave with another task.
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


class SessionRegistry:
    """Own every session's delivery channel and conversation history.

    Operations on one session id are serialized by a per-id lock.
    """

    def __init__(self, history: Optional[HistoryManager] = None) -> None:
        self._channels: dict[str, EventChannel] = {}
        self._history = history or HistoryManager()
        self._locks = KeyedLock()

    async def open(self, session_id: str, channel: EventChannel) -> None:
        """Attach ``channel`` to the session, replacing any previous one."""

        async with self._locks.hold(session_id):
            previous = self._channels.get(session_id)
            self._channels[session_id] = channel
            self._history.ensure(session_id)
        if previous is not None and previous is not channel:
            previous.close()
            logger.info("Session %s reconnected; previous channel closed", session_id)
        else:
            logger.info("Session %s connected", session_id)

    async def resolve(self, session_id: str) -> EventChannel:
        """Return the live channel for the session or raise ``SessionNotFound``."""

        async with self._locks.hold(session_id):
            channel = self._channels.get(session_id)
            if channel is None or channel.closed:
                raise SessionNotFound(session_id)
            return channel

    async def close(self, session_id: str, channel: Optional[EventChannel] = None) -> None:
        """Invalidate the session's channel; history is kept.

        When ``channel`` is given, only that channel is detached, so a stale
        connection going away never closes its replacement.
        """

        async with self._locks.hold(session_id):
            current = self._channels.get(session_id)
            if current is None or (channel is not None and current is not channel):
                if channel is not None:
                    channel.close()
                return
            self._channels.pop(session_id, None)
        current.close()
        logger.info("Session %s disconnected", session_id)

    async def append_turn(self, session_id: str, turn: ConversationTurn) -> None:
        async with self._locks.hold(session_id):
            self._history.append(session_id, turn)

    async def read_history(self, session_id: str) -> list[ConversationTurn]:
        async with self._locks.hold(session_id):
            return self._history.read(session_id)

    async def recent_history(self, session_id: str, limit: int) -> list[ConversationTurn]:
        async with self._locks.hold(session_id):
            return self._history.recent(session_id, limit)

    async def clear_history(self, session_id: str) -> None:
        async with self._locks.hold(session_id):
            self._history.clear(session_id)

    def active_count(self) -> int:
        return sum(1 for channel in self._channels.values() if not channel.closed)

    async def shutdown(self) -> None:
        """Close every open channel."""

        channels = list(self._channels.values())
        self._channels.clear()
        for channel in channels:
            channel.close()


def get_session_registry(request: Request) -> SessionRegistry:
    """Dependency to access the session registry from app state."""

    return request.app.state.session_registry
