from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from ridewise.listings.base import AcquisitionFailure, ListingProvider
from ridewise.listings.fallback import fallback_detail, fallback_summaries
from ridewise.listings.types import ListingDetail, ListingSummary, SearchIntent

logger = logging.getLogger(__name__)

DETAIL_LIMIT = 3
FALLBACK_NOTICE = "Search failed. Using sample data instead."


@dataclass(frozen=True)
class SearchOutcome:
    """Summaries returned by the search stage and how they were obtained."""

    summaries: list[ListingSummary]
    used_fallback: bool = False
    error: Optional[str] = None


class AcquisitionGateway:
    """Wrap a listings provider with fallback, bounds and politeness pacing."""

    def __init__(
        self,
        provider: ListingProvider,
        detail_limit: int = DETAIL_LIMIT,
        detail_interval_sec: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._detail_limit = max(0, detail_limit)
        self._detail_interval = max(0.0, detail_interval_sec)
        self._sleep = sleep
        self._clock = clock
        self._detail_lock = asyncio.Lock()
        self._last_detail_call: Optional[float] = None

    @property
    def detail_limit(self) -> int:
        return self._detail_limit

    async def search(self, intent: SearchIntent) -> SearchOutcome:
        """Search the provider, substituting the fallback dataset on failure."""

        try:
            summaries = await self._provider.search(intent)
        except AcquisitionFailure as exc:
            logger.warning("Listing search failed on %s: %s", exc.source, exc.message)
            return SearchOutcome(fallback_summaries(), used_fallback=True, error=FALLBACK_NOTICE)
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error while searching listings")
            return SearchOutcome(fallback_summaries(), used_fallback=True, error=FALLBACK_NOTICE)
        return SearchOutcome(list(summaries))

    def detail_count(self, summaries: Sequence[ListingSummary]) -> int:
        return min(self._detail_limit, len(summaries))

    async def enrich_details(
        self,
        summaries: Sequence[ListingSummary],
        k: Optional[int] = None,
        used_fallback: bool = False,
    ) -> list[ListingDetail]:
        """Enrich the first ``k`` summaries, one provider call at a time.

        A failing item degrades to its plain summary; the batch always
        returns one entry per selected summary, in input order.
        """

        limit = self._detail_limit if k is None else max(0, min(k, self._detail_limit))
        details: list[ListingDetail] = []
        for summary in list(summaries)[:limit]:
            if used_fallback:
                details.append(fallback_detail(summary.id) or ListingDetail.degraded(summary))
                continue
            details.append(await self._enrich_one(summary))
        return details

    async def _enrich_one(self, summary: ListingSummary) -> ListingDetail:
        async with self._detail_lock:
            await self._wait_for_turn()
            try:
                return await self._provider.fetch_detail(summary)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Could not get details for %s: %s", summary.title, exc)
                return ListingDetail.degraded(summary)
            finally:
                self._last_detail_call = self._clock()

    async def _wait_for_turn(self) -> None:
        if self._last_detail_call is None or self._detail_interval <= 0:
            return
        remaining = self._detail_interval - (self._clock() - self._last_detail_call)
        if remaining > 0:
            await self._sleep(remaining)
