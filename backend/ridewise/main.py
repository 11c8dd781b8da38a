from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ridewise.api import chat as chat_api
from ridewise.api import health as health_api
from ridewise.api import websocket as websocket_api
from ridewise.core.config import Settings, get_settings
from ridewise.core.logging import setup_logging
from ridewise.listings.base import ListingProvider
from ridewise.listings.riyasewana import RiyasewanaProvider
from ridewise.services.acquisition_gateway import AcquisitionGateway
from ridewise.services.narration_service import NarrationService, create_narration_service
from ridewise.services.pipeline import PipelineOrchestrator
from ridewise.services.session_registry import SessionRegistry
from ridewise.services.stream_multiplexer import StreamMultiplexer


def create_app(
    settings: Optional[Settings] = None,
    listing_provider: Optional[ListingProvider] = None,
    narration_service: Optional[NarrationService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or get_settings()
    setup_logging(settings.log_level)

    registry = SessionRegistry()
    gateway = AcquisitionGateway(
        listing_provider
        or RiyasewanaProvider(
            base_url=settings.listings_base_url,
            timeout_sec=settings.listings_timeout_sec,
        ),
        detail_limit=settings.detail_limit,
        detail_interval_sec=settings.detail_fetch_interval_sec,
    )
    multiplexer = StreamMultiplexer(registry, delay_window=settings.delay_window)
    orchestrator = PipelineOrchestrator(
        registry,
        gateway,
        narration_service or create_narration_service(settings),
        multiplexer,
        vehicle_detail_delay_sec=settings.vehicle_detail_delay_sec,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.orchestrator.shutdown()
        await app.state.session_registry.shutdown()

    app = FastAPI(title="Ridewise", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_registry = registry
    app.state.gateway = gateway
    app.state.multiplexer = multiplexer
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_api.router)
    app.include_router(websocket_api.router)
    app.include_router(health_api.router)

    return app


def run() -> None:
    """Serve the application with uvicorn using configured host and port."""

    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "ridewise.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )
