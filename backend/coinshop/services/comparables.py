"""
CoinShop - Comparable Sold Listings

Searches a marketplace's sold listings for items similar to a submission
and summarizes their prices. Scrape failures are tolerated: callers get an
empty list and carry on with the analysis.
"""

import logging
import re
import statistics
from dataclasses import asdict, dataclass
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup

from coinshop.core.config import settings

logger = logging.getLogger(__name__)

MAX_RESULTS = 50

_PRICE_RE = re.compile(r"[\d,]+\.?\d*")


@dataclass
class ComparableListing:
    title: str
    price: Optional[float]
    url: str
    image: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MarketStats:
    count: int
    average: Optional[float]
    median: Optional[float]
    low: Optional[float]
    high: Optional[float]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def parse_price(text: str) -> Optional[float]:
    """First price-looking number in ``text``; ``"$1,234.50 to $2,000"`` -> 1234.5."""
    match = _PRICE_RE.search(text or "")
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def parse_search_results(html: str) -> list[ComparableListing]:
    """Extract listings from a search results page."""
    soup = BeautifulSoup(html, "html.parser")
    listings: list[ComparableListing] = []

    for item in soup.select(".s-item"):
        link = item.select_one(".s-item__link")
        href = link.get("href") if link else None
        if not href or "p2489527" in href:  # promoted placeholder
            continue

        title_el = item.select_one(".s-item__title")
        title = title_el.get_text(strip=True) if title_el else ""
        if not title or title == "Shop on eBay":
            continue

        price_el = item.select_one(".s-item__price")
        image_el = item.select_one(".s-item__image-img")
        image = image_el.get("src") if image_el else None

        listings.append(
            ComparableListing(
                title=title,
                price=parse_price(price_el.get_text(strip=True) if price_el else ""),
                url=href,
                image=image.replace("s-l225", "s-l1600") if image else None,
            )
        )

    return listings[:MAX_RESULTS]


def calculate_market_stats(listings: list[ComparableListing]) -> MarketStats:
    """Count, average, median, low and high over listings with a price."""
    prices = [item.price for item in listings if item.price is not None and item.price > 0]
    if not prices:
        return MarketStats(count=0, average=None, median=None, low=None, high=None)

    return MarketStats(
        count=len(prices),
        average=round(sum(prices) / len(prices), 2),
        median=round(statistics.median(prices), 2),
        low=min(prices),
        high=max(prices),
    )


class ComparablesSearcher:
    """Sold-listing search over HTTP."""

    def __init__(
        self,
        search_url: Optional[str] = None,
        category_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.search_url = search_url or settings.comparables_search_url
        self.category_id = category_id or settings.comparables_category_id
        self._transport = transport

    async def search(self, query: str) -> list[ComparableListing]:
        """Sold listings matching ``query``; empty on any fetch failure."""
        if not query:
            return []

        params = {
            "_nkw": query,
            "_sacat": self.category_id,
            "LH_Sold": "1",
            "LH_Complete": "1",
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=settings.comparables_timeout_seconds,
                headers={"User-Agent": settings.user_agent},
                follow_redirects=True,
            ) as client:
                response = await client.get(self.search_url, params=params)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Comparables search failed for '{query}': {e}")
            return []

        listings = parse_search_results(response.text)
        logger.info(f"Found {len(listings)} comparables for '{query}'")
        return listings
