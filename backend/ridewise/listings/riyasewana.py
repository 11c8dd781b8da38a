from __future__ import annotations

import logging
import time
from typing import Optional

import httpx
from bs4 import BeautifulSoup, Tag

from ridewise.listings.base import AcquisitionFailure, DetailEnrichmentError
from ridewise.listings.parsing import (
    absolute_url,
    extract_features,
    extract_year,
    normalize_whitespace,
    parse_numeric_price,
)
from ridewise.listings.types import ListingDetail, ListingSummary, SearchIntent

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}

MAX_DESCRIPTION_CHARS = 500
MAX_ADDITIONAL_IMAGES = 5


class RiyasewanaProvider:
    """Scrape search results and listing pages from riyasewana.com."""

    name = "riyasewana"

    def __init__(
        self,
        base_url: str = "https://riyasewana.com",
        timeout_sec: float = 30,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_sec
        self._client = http_client

    def build_search_url(self, intent: SearchIntent) -> str:
        """Build ``/search/<type>[/<make>[/<model>]]`` for an intent."""

        segments = [(intent.vehicle_type or "cars").strip().lower()]
        make = (intent.make or "").strip().lower()
        model = (intent.model or "").strip().lower().replace(" ", "-")
        if make:
            segments.append(make)
            if model:
                segments.append(model)
        return f"{self._base_url}/search/" + "/".join(segments)

    async def search(self, intent: SearchIntent) -> list[ListingSummary]:
        url = self.build_search_url(intent)
        logger.info("Searching listings at %s", url)
        try:
            response = await self._get(url)
        except httpx.HTTPError as exc:
            raise AcquisitionFailure(self.name, f"Listing search failed: {exc}") from exc
        if response.status_code >= 400:
            raise AcquisitionFailure(
                self.name,
                f"Listing search returned HTTP {response.status_code}.",
                status_code=response.status_code,
            )

        soup = BeautifulSoup(response.text, "html.parser")
        items = soup.select(".item")
        if not items and not soup.select(".results"):
            raise AcquisitionFailure(self.name, "No result container found on search page.")

        batch = int(time.time() * 1000)
        summaries = []
        for index, item in enumerate(items):
            summary = self._parse_item(item, url, f"vehicle_{batch}_{index}")
            if summary is not None:
                summaries.append(summary)
        logger.info("Found %s listings", len(summaries))
        return summaries

    async def fetch_detail(self, summary: ListingSummary) -> ListingDetail:
        logger.info("Fetching details for %s", summary.title)
        try:
            response = await self._get(summary.link)
        except httpx.HTTPError as exc:
            raise DetailEnrichmentError(summary.id, str(exc)) from exc
        if response.status_code >= 400:
            raise DetailEnrichmentError(
                summary.id, f"Detail page returned HTTP {response.status_code}."
            )

        soup = BeautifulSoup(response.text, "html.parser")
        description_node = soup.select_one(".description, .details, .content, .ad-details")
        description = (
            normalize_whitespace(description_node.get_text(" "))[:MAX_DESCRIPTION_CHARS]
            if description_node
            else ""
        )
        contact_node = soup.select_one(
            ".contact, .phone, .tel, [class*='phone'], [class*='contact']"
        )
        contact = normalize_whitespace(contact_node.get_text(" ")) if contact_node else ""

        images: list[str] = []
        for img in soup.select("img[src*='/images/'], .gallery img, .ad-images img"):
            src = absolute_url(summary.link, img.get("src"))
            if not src or "logo" in src or src in images:
                continue
            images.append(src)
            if len(images) >= MAX_ADDITIONAL_IMAGES:
                break

        return ListingDetail(
            summary=summary,
            description=description or None,
            contact=contact or None,
            additional_images=tuple(images),
            has_detail=bool(description),
        )

    def _parse_item(
        self, item: Tag, page_url: str, listing_id: str
    ) -> Optional[ListingSummary]:
        title_node = item.select_one("h2.more a, h2 a")
        if title_node is None:
            return None
        title = normalize_whitespace(title_node.get_text())
        link = absolute_url(page_url, title_node.get("href"))
        if not title or not link:
            return None

        image_node = item.select_one(".imgbox img, img")
        boxes = item.select(".boxintxt")
        price_node = item.select_one(".boxintxt.b")
        date_node = item.select_one(".boxintxt.s")
        promoted = item.select_one("img[alt*='Promoted'], img[src*='top-f']")

        price_text = _text(price_node) or "Price not listed"
        return ListingSummary(
            id=listing_id,
            title=title,
            link=link,
            image=absolute_url(page_url, image_node.get("src")) if image_node else None,
            location=_text(boxes[0]) if boxes else "N/A",
            raw_price_text=price_text,
            numeric_price=parse_numeric_price(price_text),
            mileage_text=_text(boxes[2]) if len(boxes) > 2 else "N/A",
            posted_date=_text(date_node) or "N/A",
            year=extract_year(title),
            is_promoted=promoted is not None,
            features=extract_features(title),
        )

    async def _get(self, url: str) -> httpx.Response:
        if self._client:
            return await self._client.get(url, headers=DEFAULT_HEADERS)
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            return await client.get(url, headers=DEFAULT_HEADERS)


def _text(node: Optional[Tag]) -> str:
    return normalize_whitespace(node.get_text()) if node is not None else ""
