import sys
from dataclasses import dataclass, field
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest

from ridewise.core.config import get_settings
from ridewise.listings.base import AcquisitionFailure, DetailEnrichmentError
from ridewise.listings.types import ListingDetail, ListingSummary, SearchIntent
from ridewise.main import create_app
from ridewise.providers.base import LLMResult, ProviderError, ProviderRuntimeConfig
from ridewise.services.acquisition_gateway import AcquisitionGateway
from ridewise.services.channels import EventChannel
from ridewise.services.narration_service import NarrationService
from ridewise.services.pipeline import PipelineOrchestrator
from ridewise.services.prompt_builder import PromptBuilder
from ridewise.services.session_registry import SessionRegistry
from ridewise.services.stream_multiplexer import StreamMultiplexer

NARRATION_TEXT = "## Top picks\n\nThe **Toyota Aqua 2016** is the best  value here.\nCall the seller soon."


def make_summaries(count: int) -> list[ListingSummary]:
    return [
        ListingSummary(
            id=f"listing_{index}",
            title=f"Toyota Aqua {2010 + index}",
            link=f"https://riyasewana.com/buy/toyota-aqua-{index}",
            location="Colombo",
            raw_price_text=f"Rs. {5 + index},000,000",
            numeric_price=(5 + index) * 1_000_000,
            year=2010 + index,
            features=("Hybrid",),
        )
        for index in range(count)
    ]


class StubListingProvider:
    """Listing provider stub used to avoid scraping in tests."""

    name = "stub"

    def __init__(
        self,
        summaries: list[ListingSummary] | None = None,
        fail_search: bool = False,
        failing_ids: tuple[str, ...] = (),
    ) -> None:
        self.summaries = list(summaries or [])
        self.fail_search = fail_search
        self.failing_ids = set(failing_ids)
        self.search_calls: list[SearchIntent] = []
        self.detail_calls: list[str] = []

    async def search(self, intent: SearchIntent) -> list[ListingSummary]:
        self.search_calls.append(intent)
        if self.fail_search:
            raise AcquisitionFailure(self.name, "listing source offline")
        return list(self.summaries)

    async def fetch_detail(self, summary: ListingSummary) -> ListingDetail:
        self.detail_calls.append(summary.id)
        if summary.id in self.failing_ids:
            raise DetailEnrichmentError(summary.id, "detail page unavailable")
        return ListingDetail(
            summary=summary,
            description=f"Details for {summary.title}",
            contact="077 123 4567",
            has_detail=True,
        )


class StubNarrationAdapter:
    """Text generation stub returning canned narration."""

    def __init__(self, text: str = NARRATION_TEXT, fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.calls: list[list[dict]] = []

    async def generate(self, cfg: ProviderRuntimeConfig, messages: list[dict]) -> LLMResult:
        self.calls.append(messages)
        if self.fail:
            raise ProviderError("PROVIDER_UPSTREAM", "Provider returned 503", retryable=True)
        return LLMResult(
            content=self.text,
            model_provider=cfg.provider,
            model_name=cfg.model_name,
            token_in=1,
            token_out=1,
        )


class RecordingChannel(EventChannel):
    """Channel that keeps every delivered event in memory."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[dict] = []

    async def _deliver(self, event: dict) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [event["type"] for event in self.events]

    def of_type(self, event_type: str) -> list[dict]:
        return [event for event in self.events if event["type"] == event_type]


@dataclass
class PipelineHarness:
    registry: SessionRegistry
    gateway: AcquisitionGateway
    orchestrator: PipelineOrchestrator
    provider: StubListingProvider
    adapter: StubNarrationAdapter
    sleeps: list[float] = field(default_factory=list)

    async def open(self, session_id: str = "session-1") -> RecordingChannel:
        channel = RecordingChannel()
        await self.registry.open(session_id, channel)
        return channel


def build_narration(adapter: StubNarrationAdapter) -> NarrationService:
    return NarrationService(
        adapter,
        ProviderRuntimeConfig(provider="stub", model_name="stub-model"),
        PromptBuilder(language="English"),
    )


@pytest.fixture
def listing_provider():
    return StubListingProvider(make_summaries(5))


@pytest.fixture
def narration_adapter():
    return StubNarrationAdapter()


@pytest.fixture
def channel_factory():
    return RecordingChannel


@pytest.fixture
def harness(listing_provider, narration_adapter):
    sleeps: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    registry = SessionRegistry()
    gateway = AcquisitionGateway(listing_provider, detail_interval_sec=0)
    multiplexer = StreamMultiplexer(registry, sleep=fake_sleep)
    orchestrator = PipelineOrchestrator(
        registry,
        gateway,
        build_narration(narration_adapter),
        multiplexer,
        vehicle_detail_delay_sec=0.5,
        sleep=fake_sleep,
    )
    return PipelineHarness(
        registry=registry,
        gateway=gateway,
        orchestrator=orchestrator,
        provider=listing_provider,
        adapter=narration_adapter,
        sleeps=sleeps,
    )


@pytest.fixture
def app(monkeypatch, listing_provider, narration_adapter):
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("DETAIL_FETCH_INTERVAL_SEC", "0")
    monkeypatch.setenv("VEHICLE_DETAIL_DELAY_SEC", "0")
    monkeypatch.setenv("STREAM_DELAY_MIN_SEC", "0")
    monkeypatch.setenv("STREAM_DELAY_MAX_SEC", "0")
    monkeypatch.setenv("RECOMMENDATION_DELAY_MIN_SEC", "0")
    monkeypatch.setenv("RECOMMENDATION_DELAY_MAX_SEC", "0")
    get_settings.cache_clear()
    app = create_app(
        listing_provider=listing_provider,
        narration_service=build_narration(narration_adapter),
    )
    yield app
    get_settings.cache_clear()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.state.orchestrator.shutdown()
    await app.state.session_registry.shutdown()


@pytest.fixture
def anyio_backend():
    return "asyncio"
