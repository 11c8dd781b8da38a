from __future__ import annotations

from pydantic import Field

from ridewise.schemas.common import APIModel


class ChatMessageRequest(APIModel):
    """Payload for sending a chat message into an open stream."""

    message: str = Field(min_length=1)
    client_id: str = Field(alias="clientId", min_length=1, max_length=128)


class ChatAcceptedResponse(APIModel):
    """Acknowledgement that a message was queued for processing."""

    accepted: bool = True
    client_id: str = Field(serialization_alias="clientId")


class ClearHistoryResponse(APIModel):
    success: bool = True


class HealthResponse(APIModel):
    """Liveness information for load balancers and the UI."""

    status: str = "ok"
    active_connections: int = Field(serialization_alias="activeConnections")
    timestamp: str
