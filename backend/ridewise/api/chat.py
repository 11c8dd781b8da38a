from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from ridewise.core.security import sanitize_text
from ridewise.schemas.chat import (
    ChatAcceptedResponse,
    ChatMessageRequest,
    ClearHistoryResponse,
)
from ridewise.services.channels import QueueChannel, format_sse
from ridewise.services.pipeline import PipelineOrchestrator, get_orchestrator
from ridewise.services.session_registry import (
    SessionNotFound,
    SessionRegistry,
    get_session_registry,
)

router = APIRouter(prefix="/api", tags=["chat"])

MAX_MESSAGE_LEN = 2000
MAX_CLIENT_ID_LEN = 128

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def resolve_client_id(client_id: Optional[str]) -> str:
    """Reuse a client-supplied id for reconnects, otherwise mint one."""

    return sanitize_text(client_id or "", MAX_CLIENT_ID_LEN) or uuid.uuid4().hex


def connected_event(session_id: str) -> dict:
    return {"type": "connected", "clientId": session_id, "sessionId": session_id}


@router.get("/chat-stream")
async def open_chat_stream(
    client_id: Optional[str] = Query(default=None, alias="clientId"),
    registry: SessionRegistry = Depends(get_session_registry),
) -> StreamingResponse:
    """Open a session and stream its events as Server-Sent Events."""

    session_id = resolve_client_id(client_id)
    channel = QueueChannel()
    await registry.open(session_id, channel)
    await channel.send(connected_event(session_id))

    async def event_stream():
        try:
            async for event in channel.events():
                yield format_sse(event)
        finally:
            await registry.close(session_id, channel)

    return StreamingResponse(
        event_stream(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post(
    "/chat-stream",
    response_model=ChatAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def send_chat_message(
    payload: ChatMessageRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> ChatAcceptedResponse:
    """Queue a message for processing on the client's open stream."""

    message = sanitize_text(payload.message, MAX_MESSAGE_LEN)
    if not message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message and clientId are required",
        )
    try:
        await orchestrator.submit(payload.client_id, message)
    except SessionNotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Client stream not found"
        ) from exc
    return ChatAcceptedResponse(client_id=payload.client_id)


@router.get("/chat-history/{client_id}")
async def get_chat_history(
    client_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> list[dict]:
    """Return the client's conversation turns, oldest first."""

    turns = await registry.read_history(client_id)
    return [turn.to_payload() for turn in turns]


@router.delete("/chat-history/{client_id}", response_model=ClearHistoryResponse)
async def clear_chat_history(
    client_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> ClearHistoryResponse:
    """Reset the client's conversation history."""

    await registry.clear_history(client_id)
    return ClearHistoryResponse()
