"""Price statistics over a set of listings, used as narration context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ridewise.listings.types import ListingSummary


@dataclass(frozen=True)
class PriceRange:
    minimum: int
    maximum: int
    average: int


@dataclass(frozen=True)
class MarketSummary:
    total: int
    price_range: Optional[PriceRange]
    best_value: Optional[ListingSummary]


def price_range(listings: Iterable[ListingSummary]) -> Optional[PriceRange]:
    prices = [item.numeric_price for item in listings if item.numeric_price]
    if not prices:
        return None
    return PriceRange(
        minimum=min(prices),
        maximum=max(prices),
        average=round(sum(prices) / len(prices)),
    )


def best_value(listings: Iterable[ListingSummary]) -> Optional[ListingSummary]:
    """Pick the listing with the highest model year per rupee.

    Only listings with both a price and a year are ranked; ties keep the
    earlier listing.
    """

    best: Optional[ListingSummary] = None
    best_score = 0.0
    for item in listings:
        if not item.numeric_price or not item.year:
            continue
        score = item.year / item.numeric_price
        if best is None or score > best_score:
            best, best_score = item, score
    return best


def summarize(listings: Iterable[ListingSummary]) -> MarketSummary:
    items = list(listings)
    return MarketSummary(
        total=len(items),
        price_range=price_range(items),
        best_value=best_value(items),
    )
