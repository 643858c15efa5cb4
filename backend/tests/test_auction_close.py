"""
CoinShop - Auction Close Tests

Closing ended auctions, the expiry sweep, staff cancel and the
background scheduler that drives the sweep.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from coinshop.core.clock import utcnow
from coinshop.core.exceptions import AuctionClosedError, ConflictError, NotFoundError
from coinshop.models.auction import Auction, AuctionBid, AuctionStatus
from coinshop.models.order import Order
from coinshop.models.product import ListingType, ProductStatus
from coinshop.services.auction_scheduler import AuctionScheduler
from coinshop.services.auctions import (
    cancel_auction,
    close_auction,
    close_expired_auctions,
    place_bid,
)
from coinshop.services.metals import MetalsPriceCache, MetalsPriceService


def after_end(hours: int = 2):
    return utcnow() + timedelta(hours=hours)


async def orders_for(db, auction_id):
    result = await db.execute(select(Order).where(Order.auction_id == auction_id))
    return list(result.scalars().all())


class TestCloseAuction:
    """Closing a single auction."""

    @pytest.mark.asyncio
    async def test_sold_to_latest_bidder(self, db, factory):
        """With the reserve met the latest bidder wins and gets one order."""
        product = await factory.product()
        auction = await factory.auction(product=product, reserve_price="110.00")
        first = await factory.user()
        winner = await factory.user()
        await place_bid(db, first, auction.id, "105.00")
        await place_bid(db, winner, auction.id, "120.00")

        result = await close_auction(db, auction.id, now=after_end())
        await db.refresh(auction)

        assert result.status == AuctionStatus.SOLD
        assert result.has_winner is True
        assert result.final_bid == Decimal("120.00")
        assert auction.status == AuctionStatus.SOLD
        assert auction.final_price == Decimal("120.00")
        assert product.status == ProductStatus.SOLD

        orders = await orders_for(db, auction.id)
        assert len(orders) == 1
        assert orders[0].id == result.order_id
        assert orders[0].user_id == winner.id
        assert orders[0].total == Decimal("120.00")

        winning_bid = await db.get(AuctionBid, orders[0].winning_bid_id)
        assert winning_bid.bidder_id == winner.id

    @pytest.mark.asyncio
    async def test_reserve_not_met_expires(self, db, factory):
        """Bids under the reserve leave the auction unsold."""
        product = await factory.product()
        auction = await factory.auction(product=product, reserve_price="200.00")
        await place_bid(db, await factory.user(), auction.id, "150.00")

        result = await close_auction(db, auction.id, now=after_end())

        assert result.status == AuctionStatus.EXPIRED
        assert result.has_winner is False
        assert result.order_id is None
        assert product.status == ProductStatus.ACTIVE
        assert product.listing_type == ListingType.BUY_NOW
        assert await orders_for(db, auction.id) == []

    @pytest.mark.asyncio
    async def test_no_bids_expires(self, db, factory):
        """An auction nobody bid on expires."""
        auction = await factory.auction()

        result = await close_auction(db, auction.id, now=after_end())
        await db.refresh(auction)

        assert result.status == AuctionStatus.EXPIRED
        assert auction.final_price is None
        assert auction.closed_at is not None

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, db, factory):
        """Closing twice creates a single order and returns None the second time."""
        auction = await factory.auction()
        await place_bid(db, await factory.user(), auction.id, "105.00")

        assert await close_auction(db, auction.id, now=after_end()) is not None
        assert await close_auction(db, auction.id, now=after_end()) is None
        assert len(await orders_for(db, auction.id)) == 1

    @pytest.mark.asyncio
    async def test_close_before_end_is_noop(self, db, factory):
        """A running auction is left active and keeps accepting bids."""
        product = await factory.product()
        auction = await factory.auction(product=product)
        bidder = await factory.user()
        await place_bid(db, bidder, auction.id, "105.00")

        assert await close_auction(db, auction.id) is None

        await db.refresh(auction)
        assert auction.status == AuctionStatus.ACTIVE
        assert auction.closed_at is None
        assert await orders_for(db, auction.id) == []

        result = await place_bid(db, await factory.user(), auction.id, "110.00")
        assert result.new_current_bid == Decimal("110.00")

    @pytest.mark.asyncio
    async def test_close_unknown_auction(self, db):
        """Closing a missing auction raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await close_auction(db, uuid4())


class TestCloseExpiredSweep:
    """The periodic close-expired sweep."""

    @pytest.mark.asyncio
    async def test_sweep_counts(self, db, factory):
        """Only ended active auctions are closed and counted."""
        sold = await factory.auction(ends_in=timedelta(hours=1))
        await place_bid(db, await factory.user(), sold.id, "105.00")
        await factory.auction(ends_in=timedelta(hours=1))
        await factory.auction(ends_in=timedelta(hours=1), reserve_price="500.00")
        still_open = await factory.auction(ends_in=timedelta(days=5))

        sweep = await close_expired_auctions(db, now=after_end())

        assert len(sweep.closed) == 3
        assert sweep.sold == 1
        assert sweep.expired == 2
        assert still_open.id not in {r.auction_id for r in sweep.closed}

        again = await close_expired_auctions(db, now=after_end())
        assert again.closed == []

    @pytest.mark.asyncio
    async def test_sweep_skips_buy_now_sale(self, db, factory):
        """An auction sold by buy-now is not closed again."""
        auction = await factory.auction(buy_now_price="400.00")
        await place_bid(db, await factory.user(), auction.id, "400.00")

        sweep = await close_expired_auctions(db, now=after_end())

        assert sweep.closed == []
        assert len(await orders_for(db, auction.id)) == 1


class TestCancelAuction:
    """Staff cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_active_auction(self, db, factory):
        """Cancel ends the auction without an order and stops bidding."""
        product = await factory.product()
        auction = await factory.auction(product=product)
        await place_bid(db, await factory.user(), auction.id, "105.00")

        cancelled = await cancel_auction(db, auction.id)

        assert cancelled.status == AuctionStatus.CANCELLED
        assert product.status == ProductStatus.ACTIVE
        assert product.listing_type == ListingType.BUY_NOW
        assert await orders_for(db, auction.id) == []

        with pytest.raises(AuctionClosedError):
            await place_bid(db, await factory.user(), auction.id, "200.00")
        with pytest.raises(ConflictError):
            await cancel_auction(db, auction.id)


class TestAuctionScheduler:
    """The in-process scheduler driving the sweep."""

    @pytest.fixture
    def session_scope(self, session_factory):
        @asynccontextmanager
        async def scope():
            async with session_factory() as session:
                yield session
                await session.commit()

        return scope

    @pytest.mark.asyncio
    async def test_run_auction_sweep(self, db, factory, session_scope):
        """A sweep closes ended auctions and records the run."""
        auction = await factory.auction(ends_in=timedelta(minutes=-1))
        await db.commit()

        scheduler = AuctionScheduler(session_factory=session_scope, sweep_interval_seconds=30)
        result = await scheduler.run_auction_sweep()

        assert len(result.closed) == 1
        assert scheduler.last_sweep is not None
        assert scheduler.last_sweep_closed == 1

        stored = await db.get(Auction, auction.id, populate_existing=True)
        assert stored.status == AuctionStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_sweep_failure_is_logged(self):
        """Errors inside a sweep are swallowed and leave the last run untouched."""

        @asynccontextmanager
        async def broken_scope():
            raise RuntimeError("database unavailable")
            yield

        scheduler = AuctionScheduler(session_factory=broken_scope)
        assert await scheduler.run_auction_sweep() is None
        assert scheduler.last_sweep is None

    @pytest.mark.asyncio
    async def test_start_and_stop(self, session_scope):
        """Jobs are registered on start and removed on stop."""
        scheduler = AuctionScheduler(
            session_factory=session_scope,
            metals_service=MetalsPriceService(cache=MetalsPriceCache(ttl_seconds=300)),
            sweep_interval_seconds=60,
        )
        scheduler.start()
        try:
            status = scheduler.get_status()
            assert status["is_running"] is True
            assert status["jobs_count"] == 3
            assert "Close expired auctions" in status["next_runs"]
            assert "Expire stale offers" in status["next_runs"]
        finally:
            scheduler.stop()

        assert scheduler.is_running is False
        assert scheduler.get_status()["jobs_count"] == 0
