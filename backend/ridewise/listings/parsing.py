"""Helpers for turning raw listing text into typed fields."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urljoin

CURRENCY_PATTERN = re.compile(r"Rs\.?\s*([\d,]+)", re.IGNORECASE)
YEAR_PATTERN = re.compile(r"(\d{4})")

# Ordered (needles, tag) rules; a tag is added once when any needle occurs.
FEATURE_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("hybrid",), "Hybrid"),
    (("auto", "automatic"), "Automatic"),
    (("manual",), "Manual"),
    (("diesel",), "Diesel"),
    (("petrol",), "Petrol"),
    (("turbo",), "Turbo"),
    (("safety",), "Safety Package"),
    (("led",), "LED Lights"),
    (("sunroof", "moonroof"), "Sunroof"),
    (("leather",), "Leather Seats"),
    (("navigation", "navi"), "Navigation"),
)


def parse_numeric_price(price_text: str | None) -> Optional[int]:
    """Parse ``Rs. 7,500,000`` style text into an integer amount."""

    if not price_text:
        return None
    match = CURRENCY_PATTERN.search(price_text)
    if not match:
        return None
    digits = match.group(1).replace(",", "")
    if not digits:
        return None
    return int(digits)


def extract_year(title: str) -> Optional[int]:
    match = YEAR_PATTERN.search(title or "")
    return int(match.group(1)) if match else None


def extract_features(title: str) -> tuple[str, ...]:
    """Derive feature tags from a listing title, in rule order."""

    lowered = (title or "").lower()
    return tuple(
        tag for needles, tag in FEATURE_RULES if any(needle in lowered for needle in needles)
    )


def absolute_url(page_url: str, value: str | None) -> Optional[str]:
    """Resolve a link found on ``page_url`` the way a browser would."""

    if not value or not value.strip():
        return None
    return urljoin(page_url, value.strip())


def normalize_whitespace(value: str) -> str:
    """Collapse repeated spaces and newlines."""

    return re.sub(r"\s+", " ", value).strip()
