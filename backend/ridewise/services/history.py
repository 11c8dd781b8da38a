from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from ridewise.listings.types import SearchResult

TurnRole = Literal["user", "assistant"]


@dataclass(frozen=True)
class ConversationTurn:
    """One entry of a session's conversation log."""

    role: TurnRole
    message: str
    response: Optional[str] = None
    search_result: Optional[SearchResult] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "ai" if self.role == "assistant" else "user",
            "role": self.role,
            "message": self.message,
            "response": self.response,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.search_result is not None:
            payload["searchData"] = self.search_result.to_payload()
        return payload


class HistoryManager:
    """Append-only conversation logs keyed by session id.

    Not synchronized on its own; the session registry serializes access.
    """

    def __init__(self) -> None:
        self._turns: dict[str, list[ConversationTurn]] = {}

    def ensure(self, session_id: str) -> None:
        self._turns.setdefault(session_id, [])

    def append(self, session_id: str, turn: ConversationTurn) -> None:
        self._turns.setdefault(session_id, []).append(turn)

    def read(self, session_id: str) -> list[ConversationTurn]:
        return list(self._turns.get(session_id, ()))

    def recent(self, session_id: str, limit: int) -> list[ConversationTurn]:
        """Return the last ``limit`` turns, oldest first."""

        if limit <= 0:
            return []
        return self.read(session_id)[-limit:]

    def clear(self, session_id: str) -> None:
        self._turns[session_id] = []
