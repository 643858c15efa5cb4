"""CoinShop Services - Business logic behind the API, workers and CLI."""

from coinshop.services.auctions import (
    BidResult,
    CloseResult,
    SweepResult,
    close_auction,
    close_expired_auctions,
    place_bid,
)
from coinshop.services.metals import MetalPrices, MetalsPriceCache, MetalsPriceService

__all__ = [
    "BidResult",
    "CloseResult",
    "SweepResult",
    "place_bid",
    "close_auction",
    "close_expired_auctions",
    "MetalPrices",
    "MetalsPriceCache",
    "MetalsPriceService",
]
