from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

DEFAULT_VEHICLE_TYPE = "cars"


@dataclass(frozen=True)
class SearchIntent:
    """Structured search parameters derived from one chat message."""

    make: Optional[str] = None
    model: Optional[str] = None
    vehicle_type: str = DEFAULT_VEHICLE_TYPE
    price_min: Optional[int] = None
    price_max: Optional[int] = None
    is_vehicle_search: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "isVehicleSearch": self.is_vehicle_search,
            "searchParams": {
                "make": self.make,
                "model": self.model,
                "type": self.vehicle_type,
                "priceMin": self.price_min,
                "priceMax": self.price_max,
            },
        }


@dataclass(frozen=True)
class ListingSummary:
    """A listing as it appears on a search results page."""

    id: str
    title: str
    link: str
    location: str = "N/A"
    raw_price_text: str = "Price not listed"
    mileage_text: str = "N/A"
    posted_date: str = "N/A"
    image: Optional[str] = None
    numeric_price: Optional[int] = None
    year: Optional[int] = None
    is_promoted: bool = False
    features: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "link": self.link,
            "image": self.image,
            "location": self.location,
            "price": self.raw_price_text,
            "numericPrice": self.numeric_price,
            "mileage": self.mileage_text,
            "date": self.posted_date,
            "year": self.year,
            "isPromoted": self.is_promoted,
            "features": list(self.features),
        }


@dataclass(frozen=True)
class ListingDetail:
    """A summary enriched with fields read from the listing's own page."""

    summary: ListingSummary
    description: Optional[str] = None
    contact: Optional[str] = None
    additional_images: tuple[str, ...] = ()
    has_detail: bool = False

    @classmethod
    def degraded(cls, summary: ListingSummary) -> "ListingDetail":
        """Wrap a summary whose detail page could not be read."""

        return cls(summary=summary)

    def to_payload(self) -> dict[str, Any]:
        payload = self.summary.to_payload()
        if self.has_detail:
            payload.update(
                {
                    "description": self.description,
                    "contact": self.contact,
                    "additionalImages": list(self.additional_images),
                }
            )
        payload["hasDetails"] = self.has_detail
        return payload


@dataclass(frozen=True)
class SearchResult:
    """Everything one search stage produced, attached to the assistant turn."""

    intent: SearchIntent
    summaries: tuple[ListingSummary, ...]
    details: tuple[ListingDetail, ...] = ()
    used_fallback: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return {
            "searchParams": self.intent.to_payload()["searchParams"],
            "results": [item.to_payload() for item in self.summaries],
            "detailedResults": [item.to_payload() for item in self.details],
            "usedFallback": self.used_fallback,
            "totalCount": len(self.summaries),
            "timestamp": self.timestamp.isoformat(),
        }
