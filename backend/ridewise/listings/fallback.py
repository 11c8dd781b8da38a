from __future__ import annotations

from ridewise.listings.types import ListingDetail, ListingSummary

# Served when the live listings source is unreachable.
FALLBACK_LISTINGS: tuple[ListingDetail, ...] = (
    ListingDetail(
        summary=ListingSummary(
            id="sample_1",
            title="Suzuki Wagon R FX 2023",
            link="https://riyasewana.com/buy/suzuki-wagon-r-2023",
            image="https://riyasewana.com/images/vehicle-placeholder.jpg",
            location="Colombo",
            raw_price_text="Rs. 7,500,000",
            numeric_price=7_500_000,
            mileage_text="15,000 km",
            posted_date="2024-01-15",
            year=2023,
            is_promoted=True,
            features=("Automatic", "Petrol", "Safety Package"),
        ),
        description="Brand new condition, full option package, maintained by agents",
        has_detail=True,
    ),
    ListingDetail(
        summary=ListingSummary(
            id="sample_2",
            title="Toyota Aqua 2015",
            link="https://riyasewana.com/buy/toyota-aqua-2015",
            image="https://riyasewana.com/images/vehicle-placeholder.jpg",
            location="Kandy",
            raw_price_text="Rs. 5,200,000",
            numeric_price=5_200_000,
            mileage_text="85,000 km",
            posted_date="2024-01-14",
            year=2015,
            is_promoted=False,
            features=("Hybrid", "Automatic"),
        ),
        description="Well maintained hybrid vehicle, good fuel efficiency",
        has_detail=True,
    ),
)


def fallback_summaries() -> list[ListingSummary]:
    return [item.summary for item in FALLBACK_LISTINGS]


def fallback_detail(listing_id: str) -> ListingDetail | None:
    """Return the built-in detail record for a fallback listing id."""

    for item in FALLBACK_LISTINGS:
        if item.summary.id == listing_id:
            return item
    return None
