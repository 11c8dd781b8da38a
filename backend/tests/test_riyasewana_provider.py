from __future__ import annotations

import httpx
import pytest

from ridewise.listings.base import AcquisitionFailure, DetailEnrichmentError
from ridewise.listings.riyasewana import RiyasewanaProvider
from ridewise.listings.types import ListingSummary, SearchIntent

BASE_URL = "https://riyasewana.com"

SEARCH_PAGE = """
<html><body><div class="results">
  <li class="item">
    <h2 class="more"><a href="/buy/toyota-aqua-2015-sale-colombo-123">Toyota Aqua 2015 Hybrid Auto</a></h2>
    <div class="imgbox"><img src="//riyasewana.com/images/aqua.jpg"></div>
    <div class="boxtext">
      <div class="boxintxt">Colombo</div>
      <div class="boxintxt b">Rs. 5,200,000</div>
      <div class="boxintxt">85,000 km</div>
      <div class="boxintxt s">2024-01-14</div>
    </div>
    <img alt="Promoted ad" src="/assets/top-f.png">
  </li>
  <li class="item">
    <h2><a href="https://riyasewana.com/buy/suzuki-alto-2012">Suzuki Alto 2012</a></h2>
    <div class="boxintxt">Kandy</div>
    <div class="boxintxt b">Negotiable</div>
  </li>
  <li class="item"><p>advert without a title</p></li>
</div></body></html>
"""

DETAIL_PAGE = """
<html><body>
  <div class="description">  Well maintained,
     single owner.  </div>
  <div class="contact-box">Call 077 123 4567</div>
  <img src="/images/logo.png">
  <img src="/images/aqua-1.jpg"><img src="/images/aqua-2.jpg">
</body></html>
"""


def test_build_search_url() -> None:
    provider = RiyasewanaProvider(BASE_URL)

    assert provider.build_search_url(SearchIntent()) == f"{BASE_URL}/search/cars"
    assert (
        provider.build_search_url(SearchIntent(make="Suzuki", model="wagon r"))
        == f"{BASE_URL}/search/cars/suzuki/wagon-r"
    )
    assert (
        provider.build_search_url(SearchIntent(model="aqua", vehicle_type="vans"))
        == f"{BASE_URL}/search/vans"
    )


@pytest.mark.anyio
async def test_search_parses_listing_cards() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/search/cars/toyota"
        return httpx.Response(200, text=SEARCH_PAGE)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = RiyasewanaProvider(BASE_URL, http_client=client)
        results = await provider.search(SearchIntent(make="Toyota", is_vehicle_search=True))

    assert len(results) == 2
    first, second = results
    assert first.title == "Toyota Aqua 2015 Hybrid Auto"
    assert first.link == f"{BASE_URL}/buy/toyota-aqua-2015-sale-colombo-123"
    assert first.image == "https://riyasewana.com/images/aqua.jpg"
    assert first.location == "Colombo"
    assert first.raw_price_text == "Rs. 5,200,000"
    assert first.numeric_price == 5_200_000
    assert first.mileage_text == "85,000 km"
    assert first.posted_date == "2024-01-14"
    assert first.year == 2015
    assert first.is_promoted is True
    assert first.features == ("Hybrid", "Automatic")
    assert second.numeric_price is None
    assert second.is_promoted is False
    assert second.mileage_text == "N/A"


@pytest.mark.anyio
async def test_search_http_error_raises_acquisition_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="down")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = RiyasewanaProvider(BASE_URL, http_client=client)
        with pytest.raises(AcquisitionFailure) as exc_info:
            await provider.search(SearchIntent())

    assert exc_info.value.status_code == 503


@pytest.mark.anyio
async def test_search_connection_error_raises_acquisition_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = RiyasewanaProvider(BASE_URL, http_client=client)
        with pytest.raises(AcquisitionFailure):
            await provider.search(SearchIntent())


@pytest.mark.anyio
async def test_fetch_detail_reads_listing_page() -> None:
    summary = ListingSummary(id="v1", title="Toyota Aqua 2015", link=f"{BASE_URL}/buy/aqua")

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/buy/aqua"
        return httpx.Response(200, text=DETAIL_PAGE)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        detail = await RiyasewanaProvider(BASE_URL, http_client=client).fetch_detail(summary)

    assert detail.summary is summary
    assert detail.description == "Well maintained, single owner."
    assert detail.contact == "Call 077 123 4567"
    assert detail.additional_images == (
        f"{BASE_URL}/images/aqua-1.jpg",
        f"{BASE_URL}/images/aqua-2.jpg",
    )
    assert detail.has_detail is True


@pytest.mark.anyio
async def test_fetch_detail_http_error_raises() -> None:
    summary = ListingSummary(id="v1", title="Toyota Aqua 2015", link=f"{BASE_URL}/buy/aqua")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="gone")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(DetailEnrichmentError):
            await RiyasewanaProvider(BASE_URL, http_client=client).fetch_detail(summary)


@pytest.mark.anyio
async def test_fetch_detail_resolves_images_against_listing_page() -> None:
    summary = ListingSummary(
        id="v2", title="Toyota Aqua 2015", link=f"{BASE_URL}/buy/toyota-aqua-123"
    )
    page = """
    <html><body>
      <div class="description">Clean car.</div>
      <div class="gallery"><img src="photos/a.jpg"></div>
    </body></html>
    """

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=page)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        detail = await RiyasewanaProvider(BASE_URL, http_client=client).fetch_detail(summary)

    assert detail.additional_images == (f"{BASE_URL}/buy/photos/a.jpg",)
