"""
CoinShop API - Offer Endpoints

Buyers make offers on fixed-price products; sellers (the consignor, or
staff) accept, decline or counter them.
"""

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_current_user_or_api_key
from coinshop.core.clock import ensure_utc
from coinshop.core.database import get_db
from coinshop.core.exceptions import ValidationError
from coinshop.models.offer import Offer, OfferStatus
from coinshop.models.user import User
from coinshop.schemas.offer import (
    OfferAction,
    OfferCreate,
    OfferListResponse,
    OfferProduct,
    OfferResponse,
)
from coinshop.services import offers as offer_service

router = APIRouter(tags=["offers"])


def _offer_response(offer: Offer) -> OfferResponse:
    response = OfferResponse.model_validate(offer, from_attributes=True)
    response.expires_at = ensure_utc(offer.expires_at)
    response.counter_expires_at = ensure_utc(offer.counter_expires_at)
    response.created_at = ensure_utc(offer.created_at)
    product = offer.product
    if product is not None:
        response.product = OfferProduct(
            id=product.id,
            title=product.title,
            price=float(product.price) if product.price is not None else None,
            image_url=product.images[0].url if product.images else None,
        )
    return response


def _offer_list(offers: list[Offer]) -> OfferListResponse:
    return OfferListResponse(offers=[_offer_response(o) for o in offers], total=len(offers))


@router.post("/offers", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def make_offer(
    data: OfferCreate,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """
    Offer a price on an active fixed-price product.

    The offer stays open for `expires_in_hours` (48 by default). One open
    offer per buyer and product; a second answers 409 `duplicate_offer`.
    """
    offer = await offer_service.create_offer(
        db,
        user,
        data.product_id,
        data.amount,
        message=data.message,
        expires_in_hours=data.expires_in_hours,
    )
    return _offer_response(offer)


@router.get("/offers", response_model=OfferListResponse)
async def list_offers(
    role: Literal["buyer", "seller"] = Query("buyer"),
    offer_status: Optional[OfferStatus] = Query(None, alias="status"),
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """Offers the caller made (`role=buyer`) or may answer (`role=seller`)."""
    if role == "seller":
        offers = await offer_service.list_seller_offers(db, user, status=offer_status)
    else:
        offers = await offer_service.list_buyer_offers(db, user, status=offer_status)
    return _offer_list(offers)


@router.get("/offers/{offer_id}", response_model=OfferResponse)
async def get_offer(
    offer_id: UUID,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    return _offer_response(await offer_service.get_offer(db, user, offer_id))


@router.patch("/offers/{offer_id}", response_model=OfferResponse)
async def act_on_offer(
    offer_id: UUID,
    data: OfferAction,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """
    Accept, decline or counter (seller), or accept the counter or
    withdraw (buyer).

    Accepting sells the product and opens a pending order at the agreed
    price; the order id is returned on the offer.
    """
    if data.action == "accept":
        offer = await offer_service.accept_offer(db, user, offer_id)
    elif data.action == "decline":
        offer = await offer_service.decline_offer(db, user, offer_id)
    elif data.action == "counter":
        if data.amount is None:
            raise ValidationError("Valid counter amount is required")
        offer = await offer_service.counter_offer(
            db,
            user,
            offer_id,
            data.amount,
            message=data.message,
            expires_in_hours=data.expires_in_hours,
        )
    elif data.action == "accept-counter":
        offer = await offer_service.accept_counter_offer(db, user, offer_id)
    else:
        offer = await offer_service.withdraw_offer(db, user, offer_id)
    return _offer_response(offer)


@router.get("/products/{product_id}/offers", response_model=OfferListResponse)
async def product_offers(
    product_id: UUID,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """Every offer on a product, for its consignor or staff."""
    return _offer_list(await offer_service.get_product_offers(db, user, product_id))
