"""
CoinShop - Checkout and Order Tests
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from coinshop.core.exceptions import (
    NotFoundError,
    PaymentNotConfiguredError,
    PermissionDeniedError,
    UpstreamError,
    ValidationError,
)
from coinshop.models.order import Order, OrderStatus
from coinshop.models.product import Product, ProductImage, ProductStatus
from coinshop.services.checkout import CartItem, build_line_items, create_checkout
from coinshop.services.dashboard import get_dashboard_stats
from coinshop.services.orders import (
    generate_order_number,
    get_order,
    list_orders,
    update_order_status,
)


class FakeGateway:
    """Records the session request and answers with a fixed URL."""

    def __init__(self, error: Exception = None):
        self.calls = []
        self.error = error

    async def create_checkout_session(self, customer_email, line_items, metadata, success_url, cancel_url):
        self.calls.append(
            dict(
                customer_email=customer_email,
                line_items=line_items,
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        )
        if self.error:
            raise self.error
        return "https://pay.example.com/session/abc123"


class TestCheckout:
    """Cart to pending order and payment session."""

    @pytest.mark.asyncio
    async def test_creates_order_and_session(self, db, factory):
        """Active products are priced into a pending order and a session."""
        buyer = await factory.user()
        morgan = await factory.product(price="85.50")
        eagle = await factory.product(price="2350.00")
        db.add(ProductImage(product_id=morgan.id, url="https://img.example.com/m.jpg", sort_order=0))
        sold = await factory.product(price="10.00", status=ProductStatus.SOLD)
        await db.flush()
        gateway = FakeGateway()

        session = await create_checkout(
            db,
            buyer,
            [CartItem(morgan.id), CartItem(eagle.id), CartItem(sold.id)],
            gateway,
        )

        assert session.url == "https://pay.example.com/session/abc123"
        assert session.order.status == OrderStatus.PENDING
        assert session.order.total == Decimal("2435.50")
        assert len(session.order.items) == 2

        call = gateway.calls[0]
        assert call["customer_email"] == buyer.email
        amounts = sorted(item["price_data"]["unit_amount"] for item in call["line_items"])
        assert amounts == [8550, 235000]
        assert call["metadata"]["order_number"] == session.order.order_number
        assert session.order.order_number in call["success_url"]

    @pytest.mark.asyncio
    async def test_rejects_empty_or_unavailable_cart(self, db, factory):
        """Empty carts and carts of unavailable products are invalid."""
        buyer = await factory.user()
        draft = await factory.product(status=ProductStatus.DRAFT)

        with pytest.raises(ValidationError):
            await create_checkout(db, buyer, [], FakeGateway())
        with pytest.raises(ValidationError):
            await create_checkout(db, buyer, [CartItem(draft.id), CartItem(uuid4())], FakeGateway())

    @pytest.mark.asyncio
    async def test_rejects_multiple_units(self, db, factory):
        """Asking for more than one unit of a piece is rejected before any order exists."""
        buyer = await factory.user()
        product = await factory.product()
        gateway = FakeGateway()

        with pytest.raises(ValidationError) as exc:
            await create_checkout(db, buyer, [CartItem(product.id, quantity=3)], gateway)

        assert exc.value.code == "invalid_quantity"
        assert exc.value.details["quantity"] == 3
        assert gateway.calls == []
        assert (await db.execute(select(Order))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_no_gateway(self, db, factory):
        """Without a payment provider checkout answers 503."""
        product = await factory.product()
        with pytest.raises(PaymentNotConfiguredError) as exc:
            await create_checkout(db, await factory.user(), [CartItem(product.id)], None)
        assert exc.value.status_code == 503

    @pytest.mark.asyncio
    async def test_gateway_failure(self, db, factory):
        """Provider errors are wrapped as UpstreamError."""
        product = await factory.product()
        gateway = FakeGateway(error=RuntimeError("card network down"))
        with pytest.raises(UpstreamError) as exc:
            await create_checkout(db, await factory.user(), [CartItem(product.id)], gateway)
        assert isinstance(exc.value.cause, RuntimeError)

    def test_line_items_in_cents(self):
        """Unit amounts are rounded to whole cents."""
        product = Product(title="Barber Dime", price=Decimal("19.99"), images=[])
        [item] = build_line_items([product])
        assert item["price_data"]["unit_amount"] == 1999
        assert item["price_data"]["product_data"] == {"name": product.title, "images": []}


class TestOrders:
    """Order reads and fulfillment."""

    def test_order_number_format(self):
        """Order numbers are date-stamped and prefixed."""
        number = generate_order_number()
        prefix, date, suffix = number.split("-")
        assert prefix == "CS"
        assert len(date) == 8
        assert len(suffix) == 6

    @pytest.mark.asyncio
    async def test_order_visibility(self, db, factory):
        """Buyers read their own orders; staff read any."""
        buyer = await factory.user()
        other = await factory.user()
        staff = await factory.staff()
        order = await factory.order(buyer, [await factory.product()], status=OrderStatus.PAID)
        await factory.order(other, [await factory.product()], status=OrderStatus.PAID)

        assert (await get_order(db, order.id, buyer)).id == order.id
        assert (await get_order(db, order.id, staff)).id == order.id
        with pytest.raises(PermissionDeniedError):
            await get_order(db, order.id, other)
        with pytest.raises(NotFoundError):
            await get_order(db, uuid4(), staff)

        orders, total = await list_orders(db, buyer)
        assert total == 1
        _, total = await list_orders(db, staff, status=OrderStatus.PAID)
        assert total == 2

    @pytest.mark.asyncio
    async def test_fulfillment_timestamps(self, db, factory):
        """Shipping and delivery stamp their times."""
        order = await factory.order(await factory.user(), [await factory.product()], status=OrderStatus.PAID)

        shipped = await update_order_status(db, order.id, OrderStatus.SHIPPED, tracking_number="1Z999")
        assert shipped.shipped_at is not None
        assert shipped.tracking_number == "1Z999"

        delivered = await update_order_status(db, order.id, OrderStatus.DELIVERED)
        assert delivered.delivered_at is not None


class TestDashboard:
    """Admin headline numbers."""

    @pytest.mark.asyncio
    async def test_stats(self, db, factory):
        """Revenue counts only paid-or-later orders."""
        buyer = await factory.user()
        await factory.order(buyer, [await factory.product(price="250.00")], status=OrderStatus.PAID)
        await factory.order(buyer, [await factory.product(price="40.00")], status=OrderStatus.PENDING)
        await factory.auction()
        await factory.auction(ends_in=timedelta(minutes=-5))

        stats = await get_dashboard_stats(db)

        assert stats["revenue"] == 250.0
        assert stats["orders"] == {"paid": 1, "pending": 1}
        assert stats["auctions"]["active"] == 1
        assert stats["auctions"]["by_status"] == {"active": 2}
