"""CoinShop Database Models."""

from coinshop.models.auction import Auction, AuctionBid, AuctionStatus
from coinshop.models.client import Client, ClientSource, ClientStatus, SourceType
from coinshop.models.collection import Collection, CollectionItem
from coinshop.models.integration import (
    ListingStatus,
    Platform,
    PlatformConnection,
    PlatformListing,
)
from coinshop.models.metal_price import MetalPrice
from coinshop.models.offer import OPEN_OFFER_STATUSES, Offer, OfferStatus
from coinshop.models.order import PAID_STATUSES, Order, OrderItem, OrderStatus
from coinshop.models.product import (
    Category,
    ListingType,
    MetalType,
    PriceHistory,
    Product,
    ProductImage,
    ProductStatus,
)
from coinshop.models.review import SellerReview
from coinshop.models.submission import (
    SUBMISSION_TRANSITIONS,
    Submission,
    SubmissionImage,
    SubmissionStatus,
)
from coinshop.models.user import STAFF_ROLES, ApiKey, User, UserRole

__all__ = [
    # Users
    "User",
    "UserRole",
    "STAFF_ROLES",
    "ApiKey",
    # Clients
    "Client",
    "ClientSource",
    "ClientStatus",
    "SourceType",
    # Catalog
    "Category",
    "Product",
    "ProductImage",
    "ProductStatus",
    "ListingType",
    "MetalType",
    "PriceHistory",
    # Auctions
    "Auction",
    "AuctionBid",
    "AuctionStatus",
    # Orders
    "Order",
    "OrderItem",
    "OrderStatus",
    "PAID_STATUSES",
    # Offers
    "Offer",
    "OfferStatus",
    "OPEN_OFFER_STATUSES",
    # Collections
    "Collection",
    "CollectionItem",
    # Consignment
    "Submission",
    "SubmissionImage",
    "SubmissionStatus",
    "SUBMISSION_TRANSITIONS",
    # Reviews
    "SellerReview",
    # Metals
    "MetalPrice",
    # Integrations
    "Platform",
    "PlatformConnection",
    "PlatformListing",
    "ListingStatus",
]
