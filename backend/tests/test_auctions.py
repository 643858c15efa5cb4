"""
CoinShop - Auction Service Tests

Bid validation and acceptance, buy-now, auction creation and the
auction read model.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from coinshop.core.clock import utcnow
from coinshop.core.exceptions import (
    AuctionClosedError,
    BidTooLowError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    SelfBidError,
    ValidationError,
)
from coinshop.models.auction import AuctionBid, AuctionStatus
from coinshop.models.order import Order
from coinshop.models.product import ListingType, ProductStatus
from coinshop.services.auctions import (
    create_auction,
    default_increment,
    get_bid_history,
    get_user_bids,
    get_user_won_auctions,
    list_active_auctions,
    place_bid,
    to_money,
)


class TestMoney:
    """Amount parsing and the default increment table."""

    @pytest.mark.parametrize(
        "value,expected",
        [("105", Decimal("105.00")), (105.5, Decimal("105.50")), (Decimal("7.25"), Decimal("7.25"))],
    )
    def test_to_money_accepts(self, value, expected):
        """Positive whole-cent values are accepted."""
        assert to_money(value) == expected

    @pytest.mark.parametrize("value", ["abc", None, 0, -5, "10.001", "NaN", "Infinity"])
    def test_to_money_rejects(self, value):
        """Non-numeric, non-positive and sub-cent values are rejected."""
        with pytest.raises(ValidationError) as exc:
            to_money(value)
        assert exc.value.code == "validation_error"

    @pytest.mark.parametrize(
        "price,increment",
        [("10", "1"), ("25", "5"), ("100", "10"), ("750", "25"), ("1000", "50"), ("5000", "100")],
    )
    def test_default_increment(self, price, increment):
        """Increment grows with the price."""
        assert default_increment(Decimal(price)) == Decimal(increment)


class TestPlaceBid:
    """Bid acceptance rules."""

    @pytest.mark.asyncio
    async def test_first_bid_must_clear_increment(self, db, factory):
        """The first bid must be at least starting price plus increment."""
        auction = await factory.auction(starting_price="100.00", bid_increment="5.00")
        bidder = await factory.user()

        with pytest.raises(BidTooLowError) as exc:
            await place_bid(db, bidder, auction.id, "104.99")
        assert exc.value.code == "minimum_not_met"
        assert exc.value.to_dict()["error"]["details"] == {"minimum_bid": 105.0}

        result = await place_bid(db, bidder, auction.id, "105")
        assert result.new_current_bid == Decimal("105.00")
        assert result.minimum_next_bid == Decimal("110.00")
        assert result.is_buy_now is False
        assert result.order is None

    @pytest.mark.asyncio
    async def test_accepted_bid_updates_auction(self, db, factory):
        """The latest accepted bid is the high bid."""
        auction = await factory.auction()
        first = await factory.user()
        second = await factory.user()

        await place_bid(db, first, auction.id, "105.00")
        await place_bid(db, second, auction.id, "120.00")
        await db.refresh(auction)

        assert auction.current_bid == Decimal("120.00")
        assert auction.high_bidder_id == second.id
        assert auction.bid_count == 2
        assert auction.version == 2
        assert auction.status == AuctionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_bid_below_current_rejected(self, db, factory):
        """A bid that does not beat the high bid by the increment is rejected."""
        auction = await factory.auction()
        await place_bid(db, await factory.user(), auction.id, "150.00")

        with pytest.raises(BidTooLowError) as exc:
            await place_bid(db, await factory.user(), auction.id, "152.00")
        assert exc.value.minimum_bid == Decimal("155.00")

        count = (await db.execute(select(func.count()).select_from(AuctionBid))).scalar()
        assert count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["abc", "-5", "0", "105.001"])
    async def test_malformed_amount(self, db, factory, amount):
        """Malformed amounts fail before the auction is touched."""
        auction = await factory.auction()
        with pytest.raises(ValidationError):
            await place_bid(db, await factory.user(), auction.id, amount)

    @pytest.mark.asyncio
    async def test_unknown_auction(self, db, factory):
        """Bidding on a missing auction raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await place_bid(db, await factory.user(), uuid4(), "100.00")

    @pytest.mark.asyncio
    async def test_closed_auction(self, db, factory):
        """Auctions that are not active refuse bids."""
        auction = await factory.auction(status=AuctionStatus.EXPIRED)
        with pytest.raises(AuctionClosedError) as exc:
            await place_bid(db, await factory.user(), auction.id, "500.00")
        assert exc.value.code == "auction_closed"

    @pytest.mark.asyncio
    async def test_past_end_time(self, db, factory):
        """An active auction past its end time refuses bids before the sweep runs."""
        auction = await factory.auction(ends_in=timedelta(minutes=-1))
        with pytest.raises(AuctionClosedError):
            await place_bid(db, await factory.user(), auction.id, "500.00")

    @pytest.mark.asyncio
    async def test_consignor_cannot_bid_on_own_item(self, db, factory):
        """Users of the consigning client get a self-bid error."""
        client = await factory.client()
        product = await factory.product(client=client)
        auction = await factory.auction(product=product)
        consignor = await factory.consignor(client)

        with pytest.raises(SelfBidError) as exc:
            await place_bid(db, consignor, auction.id, "200.00")
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_buy_now_sells_immediately(self, db, factory):
        """Meeting the buy-now price sells the auction and creates the order."""
        product = await factory.product()
        auction = await factory.auction(product=product, buy_now_price="500.00")
        buyer = await factory.user()

        result = await place_bid(db, buyer, auction.id, "500.00")
        await db.refresh(auction)

        assert result.is_buy_now is True
        assert result.bid.is_buy_now is True
        assert auction.status == AuctionStatus.SOLD
        assert auction.final_price == Decimal("500.00")
        assert auction.closed_at is not None
        assert product.status == ProductStatus.SOLD

        order = result.order
        assert order.user_id == buyer.id
        assert order.auction_id == auction.id
        assert order.winning_bid_id == result.bid.id
        assert order.total == Decimal("500.00")

        with pytest.raises(AuctionClosedError):
            await place_bid(db, await factory.user(), auction.id, "600.00")

    @pytest.mark.asyncio
    async def test_buy_now_below_minimum_next_bid(self, db, factory):
        """The buy-now price is honoured even when the minimum has passed it."""
        auction = await factory.auction(buy_now_price="150.00")
        await place_bid(db, await factory.user(), auction.id, "148.00")

        result = await place_bid(db, await factory.user(), auction.id, "150.00")
        assert result.is_buy_now is True
        assert result.order is not None


class TestCreateAuction:
    """Opening auctions."""

    @pytest.mark.asyncio
    async def test_staff_opens_auction(self, db, factory):
        """Staff may auction shop inventory; the increment defaults from the price."""
        staff = await factory.staff()
        product = await factory.product()
        end = utcnow() + timedelta(days=3)

        auction = await create_auction(db, staff, product.id, "100.00", end, reserve_price="250")

        assert auction.status == AuctionStatus.ACTIVE
        assert auction.current_bid == Decimal("100.00")
        assert auction.bid_increment == Decimal("10")
        assert auction.reserve_price == Decimal("250.00")
        assert auction.minimum_next_bid == Decimal("110.00")
        assert auction.reserve_met is False
        assert product.listing_type == ListingType.AUCTION

    @pytest.mark.asyncio
    async def test_consignor_opens_auction_on_own_product(self, db, factory):
        """Consignors may auction products their client owns."""
        client = await factory.client()
        product = await factory.product(client=client)
        consignor = await factory.consignor(client)

        auction = await create_auction(
            db, consignor, product.id, "50.00", utcnow() + timedelta(days=1), bid_increment="2.50"
        )
        assert auction.bid_increment == Decimal("2.50")

    @pytest.mark.asyncio
    async def test_permissions(self, db, factory):
        """Buyers and other clients' consignors may not open auctions."""
        end = utcnow() + timedelta(days=1)
        shop_product = await factory.product()
        other_product = await factory.product(client=await factory.client())
        consignor = await factory.consignor()

        with pytest.raises(PermissionDeniedError):
            await create_auction(db, await factory.user(), shop_product.id, "10", end)
        with pytest.raises(PermissionDeniedError):
            await create_auction(db, consignor, shop_product.id, "10", end)
        with pytest.raises(PermissionDeniedError):
            await create_auction(db, consignor, other_product.id, "10", end)

    @pytest.mark.asyncio
    async def test_validation(self, db, factory):
        """Buy-now must exceed the start and the end must be in the future."""
        staff = await factory.staff()
        product = await factory.product()
        future = utcnow() + timedelta(days=1)

        with pytest.raises(ValidationError):
            await create_auction(db, staff, product.id, "100", future, buy_now_price="100")
        with pytest.raises(ValidationError):
            await create_auction(db, staff, product.id, "100", utcnow() - timedelta(minutes=1))
        with pytest.raises(ValidationError):
            await create_auction(db, staff, product.id, "-1", future)
        with pytest.raises(NotFoundError):
            await create_auction(db, staff, uuid4(), "100", future)

    @pytest.mark.asyncio
    async def test_one_active_auction_per_product(self, db, factory):
        """A second active auction on the same product conflicts."""
        staff = await factory.staff()
        product = await factory.product()
        end = utcnow() + timedelta(days=1)

        await create_auction(db, staff, product.id, "100", end)
        with pytest.raises(ConflictError):
            await create_auction(db, staff, product.id, "100", end)


class TestAuctionReads:
    """Bid history, discovery and per-user views."""

    @pytest.mark.asyncio
    async def test_bid_history_newest_first(self, db, factory):
        """History is ordered newest first and honours the limit."""
        auction = await factory.auction()
        for amount in ("105", "110", "115"):
            await place_bid(db, await factory.user(), auction.id, amount)

        bids = await get_bid_history(db, auction.id)
        assert [b.amount for b in bids] == [Decimal("115"), Decimal("110"), Decimal("105")]
        assert bids[0].bidder is not None

        assert len(await get_bid_history(db, auction.id, limit=2)) == 2

        with pytest.raises(NotFoundError):
            await get_bid_history(db, uuid4())

    @pytest.mark.asyncio
    async def test_list_active_auctions(self, db, factory):
        """Only open auctions are listed, soonest ending first."""
        later = await factory.auction(ends_in=timedelta(days=2))
        sooner = await factory.auction(ends_in=timedelta(hours=2))
        await factory.auction(ends_in=timedelta(minutes=-5))
        await factory.auction(status=AuctionStatus.CANCELLED)

        auctions, total = await list_active_auctions(db)
        assert total == 2
        assert [a.id for a in auctions] == [sooner.id, later.id]

        await place_bid(db, await factory.user(), later.id, "105")
        auctions, _ = await list_active_auctions(db, sort="most-bids")
        assert auctions[0].id == later.id

        auctions, total = await list_active_auctions(db, page=2, per_page=1)
        assert total == 2
        assert len(auctions) == 1

    @pytest.mark.asyncio
    async def test_user_bids_and_wins(self, db, factory):
        """A user's active bids and won auctions are listed separately."""
        bidder = await factory.user()
        running = await factory.auction()
        won = await factory.auction(buy_now_price="300.00")

        await place_bid(db, bidder, running.id, "105")
        await place_bid(db, bidder, won.id, "300")

        bids = await get_user_bids(db, bidder)
        assert [b.auction_id for b in bids] == [running.id]

        wins = await get_user_won_auctions(db, bidder)
        assert [a.id for a in wins] == [won.id]

        orders = (await db.execute(select(Order).where(Order.user_id == bidder.id))).scalars().all()
        assert len(orders) == 1
