from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import Awaitable, Callable, Optional

from ridewise.services.session_registry import SessionNotFound, SessionRegistry

logger = logging.getLogger(__name__)

# A token is a run of non-whitespace plus the whitespace that follows it.
_TOKEN_PATTERN = re.compile(r"\S+\s*")
_LEADING_SPACE = re.compile(r"^\s*")


def tokenize(text: str) -> list[str]:
    """Split text into whitespace-delimited tokens that join back exactly.

    Leading whitespace is carried by the first token, so
    ``"".join(tokenize(text)) == text`` for every input.
    """

    if not text:
        return []
    leading = _LEADING_SPACE.match(text).group(0)
    tokens = _TOKEN_PATTERN.findall(text, len(leading))
    if not tokens:
        return [text]
    tokens[0] = leading + tokens[0]
    return tokens


class StreamMultiplexer:
    """Write events into a session's channel, pacing narrated text."""

    def __init__(
        self,
        registry: SessionRegistry,
        delay_window: Callable[[str], tuple[float, float]] = lambda _: (0.0, 0.0),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._registry = registry
        self._delay_window = delay_window
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def emit(self, session_id: str, event: dict) -> bool:
        """Deliver an event; a missing or closed channel is a silent no-op."""

        try:
            channel = await self._registry.resolve(session_id)
        except SessionNotFound:
            logger.debug("Session %s gone; dropped %s", session_id, event.get("type"))
            return False
        return await channel.send(event)

    async def stream_text(self, session_id: str, text: str, chunk_type: str) -> None:
        """Reveal ``text`` as a growing prefix, one token per event.

        Every event carries the cumulative text so far; ``isComplete`` is set
        on the last one only. Empty text yields a single complete chunk.
        """

        tokens = tokenize(text)
        if not tokens:
            await self.emit(session_id, {"type": chunk_type, "text": "", "isComplete": True})
            return

        low, high = self._delay_window(chunk_type)
        accumulated = ""
        last = len(tokens) - 1
        for index, token in enumerate(tokens):
            delay = self._rng.uniform(low, high) if high > 0 else 0.0
            if delay > 0:
                await self._sleep(delay)
            accumulated += token
            await self.emit(
                session_id,
                {"type": chunk_type, "text": accumulated, "isComplete": index == last},
            )
