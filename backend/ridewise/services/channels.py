from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, Optional

from fastapi.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)

# Application close code sent to a socket whose session was opened elsewhere.
REPLACED_CLOSE_CODE = 4000


class EventChannel:
    """A session's delivery channel. Writes after ``close`` are dropped."""

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: dict) -> bool:
        """Deliver one event; return False when it was dropped."""

        if self._closed:
            return False
        try:
            await self._deliver(event)
        except Exception as exc:  # noqa: BLE001
            logger.info("Dropping event %s on broken channel: %s", event.get("type"), exc)
            self.close()
            return False
        return True

    def close(self) -> None:
        self._closed = True

    async def _deliver(self, event: dict) -> None:
        raise NotImplementedError


class QueueChannel(EventChannel):
    """Channel drained by a Server-Sent Events response."""

    _SENTINEL: dict = {}

    def __init__(self, maxsize: int = 0) -> None:
        super().__init__()
        self._queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=maxsize)

    async def _deliver(self, event: dict) -> None:
        await self._queue.put(event)

    def close(self) -> None:
        if self._closed:
            return
        super().close()
        self._queue.put_nowait(self._SENTINEL)

    async def events(self) -> AsyncIterator[dict]:
        """Yield queued events until the channel is closed."""

        while True:
            event = await self._queue.get()
            if event is self._SENTINEL:
                return
            yield event


class WebSocketChannel(EventChannel):
    """Channel that writes JSON frames to an accepted WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        super().__init__()
        self._websocket = websocket
        self._send_lock = asyncio.Lock()
        self._close_task: Optional[asyncio.Task] = None

    async def _deliver(self, event: dict) -> None:
        async with self._send_lock:
            await self._websocket.send_json(event)

    def close(self) -> None:
        """Mark the channel closed and hang up a socket that is still connected."""

        if self._closed:
            return
        super().close()
        if (
            self._websocket.client_state is WebSocketState.CONNECTED
            and self._websocket.application_state is WebSocketState.CONNECTED
        ):
            self._close_task = asyncio.get_running_loop().create_task(self._hang_up())

    async def _hang_up(self) -> None:
        async with self._send_lock:
            try:
                await self._websocket.close(code=REPLACED_CLOSE_CODE)
            except Exception as exc:  # noqa: BLE001
                logger.info("Socket already gone while closing: %s", exc)


def format_sse(event: dict, event_id: Optional[int] = None) -> str:
    """Encode one event as a Server-Sent Events ``data:`` frame."""

    prefix = f"id: {event_id}\n" if event_id is not None else ""
    return f"{prefix}data: {json.dumps(event, ensure_ascii=False)}\n\n"
