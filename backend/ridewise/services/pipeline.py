"""Per-message pipeline: classify, search, enrich, narrate.

Each inbound message becomes one ``PipelineRun``. Runs for the same session
execute one at a time; runs for different sessions interleave freely at
every external call and paced delay.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from fastapi import Request

from ridewise.listings.types import SearchIntent, SearchResult
from ridewise.services.acquisition_gateway import AcquisitionGateway
from ridewise.services.history import ConversationTurn
from ridewise.services.intent_extractor import extract_intent
from ridewise.services.narration_service import GenerationFailure, NarrationService
from ridewise.services.session_registry import KeyedLock, SessionRegistry
from ridewise.services.stream_multiplexer import StreamMultiplexer

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Processing failed. Please try again."
STAGE_ERRORS = {
    "recommendation": "Recommendation generation failed",
    "response": "Response generation failed",
}


class PipelineState(str, Enum):
    IDLE = "idle"
    CLASSIFY_INTENT = "classify_intent"
    QUICK_REPLY = "quick_reply"
    SEARCH = "search"
    ENRICH = "enrich"
    NARRATE = "narrate"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({PipelineState.COMPLETED, PipelineState.FAILED})

_ALLOWED_TRANSITIONS = {
    PipelineState.IDLE: {PipelineState.CLASSIFY_INTENT},
    PipelineState.CLASSIFY_INTENT: {PipelineState.QUICK_REPLY, PipelineState.SEARCH},
    PipelineState.QUICK_REPLY: {PipelineState.COMPLETED},
    PipelineState.SEARCH: {PipelineState.ENRICH},
    PipelineState.ENRICH: {PipelineState.NARRATE},
    PipelineState.NARRATE: {PipelineState.COMPLETED},
}


@dataclass
class PipelineRun:
    """State of one message moving through the pipeline."""

    session_id: str
    message: str
    state: PipelineState = PipelineState.IDLE
    intent: Optional[SearchIntent] = None
    result: Optional[SearchResult] = None
    response: Optional[str] = None
    transitions: list[PipelineState] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, state: PipelineState) -> None:
        if self.finished:
            raise RuntimeError(f"Run already finished in state {self.state.value}")
        if state is not PipelineState.FAILED and state not in _ALLOWED_TRANSITIONS.get(
            self.state, ()
        ):
            raise RuntimeError(f"Illegal transition {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)


class PipelineOrchestrator:
    """Drive pipeline runs and emit their events into session channels."""

    def __init__(
        self,
        registry: SessionRegistry,
        gateway: AcquisitionGateway,
        narration: NarrationService,
        multiplexer: StreamMultiplexer,
        vehicle_detail_delay_sec: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._gateway = gateway
        self._narration = narration
        self._multiplexer = multiplexer
        self._vehicle_detail_delay = max(0.0, vehicle_detail_delay_sec)
        self._sleep = sleep
        self._run_locks = KeyedLock()
        self._tasks: set[asyncio.Task] = set()

    async def submit(self, session_id: str, message: str) -> asyncio.Task:
        """Start a run in the background.

        Raises ``SessionNotFound`` before anything is emitted when the
        session has no live channel.
        """

        await self._registry.resolve(session_id)
        task = asyncio.create_task(self.run(session_id, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, session_id: str, message: str) -> PipelineRun:
        """Process one message to a terminal state."""

        async with self._run_locks.hold(session_id):
            run = PipelineRun(session_id=session_id, message=message)
            try:
                await self._emit(run, {"type": "typing_started"})
                await self._emit(run, {"type": "message_received", "message": message})

                run.advance(PipelineState.CLASSIFY_INTENT)
                run.intent = extract_intent(message)
                if run.intent.is_vehicle_search:
                    await self._search(run, run.intent)
                else:
                    run.advance(PipelineState.QUICK_REPLY)
                    await self._narrate(run, "response")
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Pipeline run failed for session %s", session_id)
                if not run.finished:
                    run.advance(PipelineState.FAILED)
                    await self._emit(run, {"type": "error", "error": GENERIC_ERROR})
            return run

    async def shutdown(self) -> None:
        """Cancel all in-flight runs."""

        tasks = list(self._tasks)
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _search(self, run: PipelineRun, intent: SearchIntent) -> None:
        run.advance(PipelineState.SEARCH)
        await self._emit(run, {"type": "analysis_started", "intent": intent.to_payload()})
        await self._emit(run, {"type": "search_started", "intent": intent.to_payload()})

        outcome = await self._gateway.search(intent)
        if outcome.used_fallback:
            await self._emit(run, {"type": "search_error", "error": outcome.error})
        await self._emit(
            run,
            {
                "type": "search_completed",
                "resultsCount": len(outcome.summaries),
                "detailedCount": self._gateway.detail_count(outcome.summaries),
            },
        )

        run.advance(PipelineState.ENRICH)
        details = await self._gateway.enrich_details(
            outcome.summaries, used_fallback=outcome.used_fallback
        )
        total = len(details)
        for index, detail in enumerate(details):
            if self._vehicle_detail_delay > 0:
                await self._sleep(self._vehicle_detail_delay)
            await self._emit(
                run,
                {
                    "type": "vehicle_detail",
                    "vehicle": detail.to_payload(),
                    "index": index,
                    "total": total,
                },
            )

        run.result = SearchResult(
            intent=intent,
            summaries=tuple(outcome.summaries),
            details=tuple(details),
            used_fallback=outcome.used_fallback,
        )
        run.advance(PipelineState.NARRATE)
        await self._narrate(run, "recommendation")

    async def _narrate(self, run: PipelineRun, kind: str) -> None:
        await self._emit(run, {"type": f"{kind}_started"})
        history = await self._registry.recent_history(
            run.session_id, self._narration.history_window
        )
        try:
            if run.result is not None:
                text = await self._narration.recommend(run.message, run.result, history)
            else:
                text = await self._narration.quick_reply(run.message, history)
        except GenerationFailure as exc:
            logger.warning("Narration failed for session %s: %s", run.session_id, exc.message)
            run.advance(PipelineState.FAILED)
            await self._registry.append_turn(
                run.session_id, ConversationTurn(role="user", message=run.message)
            )
            await self._emit(run, {"type": f"{kind}_error", "error": STAGE_ERRORS[kind]})
            return

        await self._multiplexer.stream_text(run.session_id, text, f"{kind}_chunk")
        run.response = text
        await self._registry.append_turn(
            run.session_id,
            ConversationTurn(
                role="assistant",
                message=run.message,
                response=text,
                search_result=run.result,
            ),
        )
        run.advance(PipelineState.COMPLETED)
        await self._emit(run, {"type": "complete"})

    async def _emit(self, run: PipelineRun, event: dict) -> None:
        await self._multiplexer.emit(run.session_id, event)


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    """Dependency to access the pipeline orchestrator from app state."""

    return request.app.state.orchestrator
