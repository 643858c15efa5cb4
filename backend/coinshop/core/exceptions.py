"""
CoinShop - Exception Hierarchy

Domain errors raised by the service layer. Each error carries a stable
machine-readable ``code`` and the HTTP status the API layer should answer
with, so route handlers can let them propagate to the handler registered
in ``coinshop.main``.

Usage:
    from coinshop.core.exceptions import NotFoundError, OutbidError

    if auction is None:
        raise NotFoundError("Auction not found")
"""

from typing import Any, Optional


class CoinShopError(Exception):
    """
    Base exception for all CoinShop errors.

    All custom exceptions should inherit from this class to enable
    unified error handling throughout the application.
    """

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details or None,
            }
        }

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


# =============================================================================
# Request-scoped errors
# =============================================================================


class ValidationError(CoinShopError):
    """Malformed or semantically invalid input."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class PermissionDeniedError(CoinShopError):
    """Authenticated user may not perform this action."""

    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(CoinShopError):
    """Requested entity does not exist."""

    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(CoinShopError):
    """Request conflicts with the entity's current state."""

    status_code = 409
    default_code = "CONFLICT"


# =============================================================================
# Auction errors
# =============================================================================


class BidRejectedError(CoinShopError):
    """Base class for a bid that was refused."""

    status_code = 400
    default_code = "BID_REJECTED"


class BidTooLowError(BidRejectedError):
    """Bid is below current bid + increment."""

    default_code = "minimum_not_met"

    def __init__(self, minimum_bid, **kwargs):
        super().__init__(
            f"Minimum bid is ${minimum_bid:.2f}",
            details={"minimum_bid": float(minimum_bid)},
            **kwargs,
        )
        self.minimum_bid = minimum_bid


class OutbidError(BidRejectedError):
    """Another bid was accepted between reading and applying this one."""

    default_code = "outbid"

    def __init__(self, minimum_bid=None, **kwargs):
        details = {"minimum_bid": float(minimum_bid)} if minimum_bid is not None else None
        super().__init__(
            "You have been outbid, please retry with a higher amount",
            details=details,
            **kwargs,
        )
        self.minimum_bid = minimum_bid


class AuctionClosedError(BidRejectedError):
    """Auction is no longer accepting bids."""

    default_code = "auction_closed"


class SelfBidError(BidRejectedError):
    """Consignor tried to bid on their own item."""

    status_code = 403
    default_code = "self_bid"


# =============================================================================
# Review errors
# =============================================================================


class ReviewError(ValidationError):
    """Review cannot be created for this order."""

    default_code = "review_error"


class DuplicateReviewError(ReviewError):
    """Order has already been reviewed."""

    default_code = "duplicate_review"


# =============================================================================
# Upstream / dependency errors
# =============================================================================


class UpstreamError(CoinShopError):
    """
    An external collaborator (AI service, marketplace API, payment provider)
    failed. The message surfaced to clients stays generic; the cause is logged.
    """

    status_code = 500
    default_code = "UPSTREAM_ERROR"


class PaymentNotConfiguredError(UpstreamError):
    """No payment gateway has been configured for this deployment."""

    status_code = 503
    default_code = "PAYMENT_UNAVAILABLE"


class MarketplaceNotConfiguredError(UpstreamError):
    """No marketplace client has been configured for this deployment."""

    status_code = 503
    default_code = "MARKETPLACE_UNAVAILABLE"
