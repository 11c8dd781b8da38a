from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from ridewise.api.chat import MAX_MESSAGE_LEN, connected_event, resolve_client_id
from ridewise.core.security import sanitize_text
from ridewise.services.channels import WebSocketChannel
from ridewise.services.pipeline import PipelineOrchestrator
from ridewise.services.session_registry import SessionNotFound, SessionRegistry

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    client_id: Optional[str] = Query(default=None, alias="clientId"),
) -> None:
    """Bidirectional chat: events go out, ``{"message": ...}`` frames come in."""

    registry: SessionRegistry = websocket.app.state.session_registry
    orchestrator: PipelineOrchestrator = websocket.app.state.orchestrator

    await websocket.accept()
    session_id = resolve_client_id(client_id)
    channel = WebSocketChannel(websocket)
    await registry.open(session_id, channel)
    await channel.send(connected_event(session_id))
    try:
        while True:
            message = _parse_message(await websocket.receive_text())
            if channel.closed:
                logger.info("Session %s reopened elsewhere; closing socket", session_id)
                break
            if not message:
                await channel.send({"type": "error", "error": "Message is required"})
                continue
            try:
                await orchestrator.submit(session_id, message)
            except SessionNotFound:
                break
    except WebSocketDisconnect:
        pass
    finally:
        await registry.close(session_id, channel)


def _parse_message(raw: str) -> str:
    try:
        data = json.loads(raw)
    except ValueError:
        data = raw
    if isinstance(data, dict):
        data = data.get("message", "")
    if not isinstance(data, str):
        return ""
    return sanitize_text(data, MAX_MESSAGE_LEN)
