"""
CoinShop - Checkout Service

Turns a cart into a pending order and a hosted payment page. The payment
provider sits behind the ``PaymentGateway`` protocol; no provider client
ships with the shop, and checkout answers 503 until one is configured.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.config import settings
from coinshop.core.exceptions import (
    PaymentNotConfiguredError,
    UpstreamError,
    ValidationError,
)
from coinshop.models.order import Order
from coinshop.models.product import Product, ProductStatus
from coinshop.models.user import User
from coinshop.services.orders import LineItem, create_order

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    """Hosted checkout provider."""

    async def create_checkout_session(
        self,
        customer_email: str,
        line_items: list[dict[str, Any]],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> str:
        """Create a payment session and return the URL to redirect the buyer to."""
        ...


@dataclass
class CartItem:
    product_id: UUID
    quantity: int = 1


@dataclass
class CheckoutSession:
    url: str
    order: Order


def build_line_items(products: list[Product]) -> list[dict[str, Any]]:
    """Provider line items: unit amount in cents, title and first image."""
    line_items = []
    for product in products:
        images = [img.url for img in product.images[:1] if img.url]
        line_items.append(
            {
                "price_data": {
                    "currency": "usd",
                    "unit_amount": int(round(product.price * 100)),
                    "product_data": {"name": product.title, "images": images},
                },
                "quantity": 1,
            }
        )
    return line_items


async def create_checkout(
    db: AsyncSession,
    user: User,
    items: list[CartItem],
    gateway: Optional[PaymentGateway],
) -> CheckoutSession:
    """
    Price the cart from active products, open a pending order and start a
    payment session.

    Every product is a single piece, so each cart line must ask for exactly
    one unit.

    Raises:
        ValidationError: empty cart, a quantity other than one, or no
            purchasable products
        PaymentNotConfiguredError: no gateway configured
        UpstreamError: the gateway call failed
    """
    if not items:
        raise ValidationError("No items provided")
    for item in items:
        if item.quantity != 1:
            raise ValidationError(
                "Each item can only be purchased once",
                code="invalid_quantity",
                details={"product_id": str(item.product_id), "quantity": item.quantity},
            )

    result = await db.execute(
        select(Product)
        .where(
            Product.id.in_([item.product_id for item in items]),
            Product.status == ProductStatus.ACTIVE,
            Product.price.is_not(None),
        )
        .options(selectinload(Product.images))
    )
    products = list(result.scalars().all())
    if not products:
        raise ValidationError("No valid products found")

    if gateway is None:
        raise PaymentNotConfiguredError("Checkout is not available right now")

    order = await create_order(
        db,
        user_id=user.id,
        items=[LineItem(product=p, price=p.price) for p in products],
    )

    try:
        url = await gateway.create_checkout_session(
            customer_email=user.email,
            line_items=build_line_items(products),
            metadata={
                "user_id": str(user.id),
                "order_number": order.order_number,
                "product_ids": ",".join(str(p.id) for p in products),
            },
            success_url=f"{settings.public_app_url}/order/success?order={order.order_number}",
            cancel_url=f"{settings.public_app_url}/cart",
        )
    except Exception as e:
        logger.error(f"Checkout session creation failed for order {order.order_number}: {e}")
        raise UpstreamError("Checkout failed", cause=e)

    logger.info(f"Checkout started for order {order.order_number}")
    return CheckoutSession(url=url, order=order)
