"""
CoinShop - Metals Spot Price Service

Polls the spot price feed and serves the storefront ticker.

Fallback chain per request:
    1. in-memory cache (5 minutes)
    2. live feed (stored as a MetalPrice snapshot on success)
    3. last snapshot in the database
    4. static prices
"""

import logging
import time
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.core.clock import ensure_utc, utcnow
from coinshop.core.config import settings
from coinshop.models.metal_price import MetalPrice

logger = logging.getLogger(__name__)

METALS = ("gold", "silver", "platinum", "palladium")

FALLBACK_PRICES = {
    "gold": 2045.50,
    "silver": 24.15,
    "platinum": 1015.00,
    "palladium": 1050.00,
}


@dataclass
class MetalPrices:
    """Spot prices per troy ounce."""

    gold: float
    silver: float
    platinum: float
    palladium: float
    timestamp: datetime
    currency: str = "USD"
    source: str = "live"  # live | cache | database | fallback

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


def fallback_prices() -> MetalPrices:
    return MetalPrices(timestamp=utcnow(), source="fallback", **FALLBACK_PRICES)


class MetalsPriceCache:
    """
    Single-value cache with an expiry.

    Args:
        ttl_seconds: How long a stored value stays fresh
        clock: Monotonic seconds source (injectable for tests)
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[MetalPrices] = None
        self._expires_at: float = 0.0

    def get(self) -> Optional[MetalPrices]:
        """Cached value, or None when empty or expired."""
        if self._value is None or self._clock() >= self._expires_at:
            return None
        return self._value

    def set(self, value: MetalPrices) -> None:
        self._value = value
        self._expires_at = self._clock() + self.ttl_seconds

    def clear(self) -> None:
        self._value = None
        self._expires_at = 0.0


class MetalsFeedError(Exception):
    """The spot price feed could not be read."""


class MetalsPriceService:
    """
    Spot price lookup with caching and fallbacks.

    Usage:
        service = MetalsPriceService(cache=app.state.metals_cache)
        prices = await service.get_prices(db)
    """

    def __init__(
        self,
        cache: MetalsPriceCache,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cache = cache
        self.api_url = api_url or settings.metals_api_url
        self.api_key = api_key if api_key is not None else settings.metals_api_key
        self.timeout = timeout or settings.metals_timeout_seconds
        self._transport = transport

    async def fetch_live(self) -> MetalPrices:
        """
        Read the feed once.

        Without an API key no request is made and the static prices are
        returned.

        Raises:
            MetalsFeedError: transport failure, non-2xx status or bad payload
        """
        if not self.api_key:
            return fallback_prices()

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.get(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise MetalsFeedError(f"Failed to fetch metal prices: {e}") from e

        # Some feeds answer with a list of single-metal objects
        if isinstance(data, list):
            merged: dict[str, Any] = {}
            for entry in data:
                if isinstance(entry, dict):
                    merged.update(entry)
            data = merged
        if not isinstance(data, dict):
            raise MetalsFeedError("Unexpected metal price payload")

        try:
            prices = {metal: float(data.get(metal) or FALLBACK_PRICES[metal]) for metal in METALS}
        except (TypeError, ValueError) as e:
            raise MetalsFeedError(f"Unparseable metal price: {e}") from e

        return MetalPrices(timestamp=utcnow(), source="live", **prices)

    async def latest_snapshot(self, db: AsyncSession) -> Optional[MetalPrices]:
        """Most recent stored snapshot."""
        result = await db.execute(
            select(MetalPrice).order_by(MetalPrice.created_at.desc()).limit(1)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return MetalPrices(
            gold=float(row.gold),
            silver=float(row.silver),
            platinum=float(row.platinum),
            palladium=float(row.palladium),
            timestamp=ensure_utc(row.created_at),
            currency=row.currency,
            source="database",
        )

    async def get_prices(self, db: AsyncSession) -> MetalPrices:
        """Serve prices through the cache / live / database / static chain."""
        cached = self.cache.get()
        if cached is not None:
            return replace(cached, source="cache")

        try:
            prices = await self.fetch_live()
        except MetalsFeedError as e:
            logger.error(f"Metals feed unavailable: {e}")
            last_known = await self.latest_snapshot(db)
            if last_known is not None:
                logger.warning("Serving last stored metal prices")
                return last_known
            logger.warning("No stored metal prices, serving static fallback")
            return fallback_prices()

        self.cache.set(prices)

        if prices.source == "live":
            db.add(
                MetalPrice(
                    gold=Decimal(str(prices.gold)),
                    silver=Decimal(str(prices.silver)),
                    platinum=Decimal(str(prices.platinum)),
                    palladium=Decimal(str(prices.palladium)),
                    currency=prices.currency,
                    source="metals_api",
                )
            )
            await db.flush()

        return prices

    async def refresh(self, db: AsyncSession) -> MetalPrices:
        """Bypass the cache and poll the feed now (scheduled refresh)."""
        self.cache.clear()
        return await self.get_prices(db)
