from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ridewise.schemas.chat import HealthResponse
from ridewise.services.session_registry import SessionRegistry, get_session_registry

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(
    registry: SessionRegistry = Depends(get_session_registry),
) -> HealthResponse:
    """Report liveness and the number of open streams."""

    return HealthResponse(
        active_connections=registry.active_count(),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
