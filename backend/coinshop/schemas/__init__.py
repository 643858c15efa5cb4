"""CoinShop Schemas - Pydantic request/response models."""

from coinshop.schemas.auction import (
    AuctionCreate,
    AuctionDetail,
    AuctionListResponse,
    AuctionSummary,
    BidCreate,
    BidHistoryResponse,
    BidPlacedResponse,
    BidResponse,
    SweepResponse,
)
from coinshop.schemas.common import MessageResponse, PaginationMeta
from coinshop.schemas.metals import MetalPricesResponse
from coinshop.schemas.order import (
    CheckoutRequest,
    CheckoutResponse,
    OrderListResponse,
    OrderResponse,
)
from coinshop.schemas.product import (
    PriceHistoryResponse,
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from coinshop.schemas.review import (
    RatingSummaryResponse,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
)
from coinshop.schemas.search import SearchResponse, SuggestionsResponse

__all__ = [
    "PaginationMeta",
    "MessageResponse",
    # Auctions
    "AuctionCreate",
    "AuctionDetail",
    "AuctionListResponse",
    "AuctionSummary",
    "BidCreate",
    "BidHistoryResponse",
    "BidPlacedResponse",
    "BidResponse",
    "SweepResponse",
    # Catalog
    "ProductCreate",
    "ProductUpdate",
    "ProductResponse",
    "ProductListResponse",
    "PriceHistoryResponse",
    "SearchResponse",
    "SuggestionsResponse",
    # Reviews
    "ReviewCreate",
    "ReviewResponse",
    "ReviewListResponse",
    "RatingSummaryResponse",
    # Orders
    "OrderResponse",
    "OrderListResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    # Metals
    "MetalPricesResponse",
]
