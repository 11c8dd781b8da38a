"""Map a free-text chat message onto structured search parameters.

Every rule table is an ordered tuple of ``(substring, canonical value)`` pairs;
the first rule whose substring occurs in the lower-cased message wins, so rule
priority is the tuple order and nothing else.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

from ridewise.listings.types import DEFAULT_VEHICLE_TYPE, SearchIntent

MAKE_RULES: tuple[tuple[str, str], ...] = (
    ("suzuki", "Suzuki"),
    ("toyota", "Toyota"),
    ("honda", "Honda"),
    ("nissan", "Nissan"),
    ("mitsubishi", "Mitsubishi"),
    ("micro", "Micro"),
    ("bmw", "BMW"),
    ("mercedes", "Mercedes-Benz"),
)

TYPE_RULES: tuple[tuple[str, str], ...] = (
    ("car", "cars"),
    ("van", "vans"),
    ("suv", "suvs"),
    ("jeep", "suvs"),
    ("motor", "motorcycles"),
    ("bike", "motorcycles"),
    ("three wheel", "three-wheels"),
    ("lorry", "lorries"),
)

MODEL_TOKENS: tuple[str, ...] = (
    "aqua",
    "prius",
    "premio",
    "axio",
    "vezel",
    "wagon r",
    "swift",
    "alto",
    "mirage",
)

LAKH = 100_000

_NUMBER = r"(\d+(?:\.\d+)?)"
# "lakh", "lakhs", "lak", "lk" and the Sinhala ලක්ෂ. Latin units must end the word
# so "lakes" or "lkr" never read as a price.
_UNIT = r"(?:lakhs?|laks?|lks?|ලක්ෂ)(?![a-z])"
# "to", "-" and the Sinhala ත් ("5ත් 8 ලක්ෂ").
_CONNECTOR = r"(?:to|-|ත්)"

PRICE_RANGE_PATTERN = re.compile(rf"{_NUMBER}\s*{_CONNECTOR}\s*{_NUMBER}\s*{_UNIT}")
SINGLE_PRICE_PATTERN = re.compile(rf"{_NUMBER}\s*{_UNIT}")


def extract_intent(message: str) -> SearchIntent:
    """Classify a message into a ``SearchIntent``. Never raises."""

    text = (message or "").lower()
    make = _first_match(text, MAKE_RULES)
    vehicle_type = _first_match(text, TYPE_RULES) or DEFAULT_VEHICLE_TYPE
    model = next((token for token in MODEL_TOKENS if token in text), None)
    price_min, price_max = extract_price_range(text)

    is_vehicle_search = (
        make is not None or vehicle_type != DEFAULT_VEHICLE_TYPE or price_min is not None
    )
    return SearchIntent(
        make=make,
        model=model,
        vehicle_type=vehicle_type,
        price_min=price_min,
        price_max=price_max,
        is_vehicle_search=is_vehicle_search,
    )


def extract_price_range(text: str) -> tuple[Optional[int], Optional[int]]:
    """Return ``(price_min, price_max)`` in rupees, or ``(None, None)``.

    A range ("5 to 8 lakhs") takes precedence over a single amount
    ("6 lakhs"), which is widened to +/-20%.
    """

    text = text.lower()
    match = PRICE_RANGE_PATTERN.search(text)
    if match:
        return _lakhs(match.group(1), 1.0), _lakhs(match.group(2), 1.0)
    match = SINGLE_PRICE_PATTERN.search(text)
    if match:
        return _lakhs(match.group(1), 0.8), _lakhs(match.group(1), 1.2)
    return None, None


def _first_match(text: str, rules: Sequence[tuple[str, str]]) -> Optional[str]:
    for needle, value in rules:
        if needle in text:
            return value
    return None


def _lakhs(amount: str, factor: float) -> int:
    return int(round(float(amount) * LAKH * factor))
