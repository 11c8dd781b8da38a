from __future__ import annotations

from typing import Protocol

from ridewise.listings.types import ListingDetail, ListingSummary, SearchIntent


class ListingProvider(Protocol):
    """Interface for an external vehicle listings source."""

    name: str

    async def search(self, intent: SearchIntent) -> list[ListingSummary]:
        """Return listing summaries in the source's own ranking order."""

    async def fetch_detail(self, summary: ListingSummary) -> ListingDetail:
        """Read the secondary page of one listing."""


class AcquisitionFailure(RuntimeError):
    """Raised when a listings search cannot be completed."""

    def __init__(self, source: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.source = source
        self.message = message
        self.status_code = status_code


class DetailEnrichmentError(RuntimeError):
    """Raised when one listing's detail page cannot be read."""

    def __init__(self, listing_id: str, message: str) -> None:
        super().__init__(message)
        self.listing_id = listing_id
        self.message = message
