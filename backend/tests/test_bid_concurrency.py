"""
CoinShop - Bid Concurrency Tests

Interleaves a competing writer between a bid's read and its conditional
update to check that a bid is retried or rejected against the fresh
auction and nothing is double-applied.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

import coinshop.services.auctions as auction_service
from coinshop.core.clock import utcnow
from coinshop.core.exceptions import AuctionClosedError, OutbidError
from coinshop.models.auction import Auction, AuctionBid, AuctionStatus
from coinshop.models.order import Order
from coinshop.models.user import User
from coinshop.services.auctions import apply_bid, close_auction, place_bid

real_apply_bid = apply_bid


async def count(db, model, *conditions) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*conditions))
    return result.scalar()


class TestConditionalUpdate:
    """The version-guarded update on the auction row."""

    @pytest.mark.asyncio
    async def test_stale_version_does_not_apply(self, db, factory, session_factory):
        """Two writers that read the same version: only the first update lands."""
        auction = await factory.auction()
        first = await factory.user()
        second = await factory.user()
        await db.commit()

        async with session_factory() as a, session_factory() as b:
            seen_by_a = await a.get(Auction, auction.id)
            seen_by_b = await b.get(Auction, auction.id)

            assert await real_apply_bid(a, seen_by_a, first.id, Decimal("105.00"), False, utcnow())
            await a.commit()

            assert not await real_apply_bid(b, seen_by_b, second.id, Decimal("110.00"), False, utcnow())
            await b.rollback()

        stored = await db.get(Auction, auction.id, populate_existing=True)
        assert stored.current_bid == Decimal("105.00")
        assert stored.high_bidder_id == first.id
        assert stored.bid_count == 1
        assert stored.version == 1


class TestInterleavedBids:
    """place_bid when another writer gets in between read and write."""

    @pytest.mark.asyncio
    async def test_losing_bid_is_outbid(self, db, factory, session_factory, monkeypatch):
        """A bid that loses the race is rejected with the new minimum."""
        auction = await factory.auction(starting_price="100.00", bid_increment="5.00")
        bidder = await factory.user()
        rival = await factory.user()
        await db.commit()

        async def rival_bids_first(session, stale, bidder_id, amount, is_buy_now, now):
            async with session_factory() as other:
                fresh = await other.get(Auction, stale.id)
                assert await real_apply_bid(other, fresh, rival.id, Decimal("120.00"), False, now)
                other.add(AuctionBid(auction_id=fresh.id, bidder_id=rival.id, amount=Decimal("120.00")))
                await other.commit()
            return await real_apply_bid(session, stale, bidder_id, amount, is_buy_now, now)

        monkeypatch.setattr(auction_service, "apply_bid", rival_bids_first)

        with pytest.raises(OutbidError) as exc:
            await place_bid(db, bidder, auction.id, "110.00")

        assert exc.value.code == "outbid"
        assert exc.value.to_dict()["error"]["details"] == {"minimum_bid": 125.0}

        stored = await db.get(Auction, auction.id, populate_existing=True)
        assert stored.current_bid == Decimal("120.00")
        assert stored.high_bidder_id == rival.id
        assert stored.bid_count == 1
        assert await count(db, AuctionBid, AuctionBid.auction_id == auction.id) == 1

    @pytest.mark.asyncio
    async def test_bid_above_fresh_minimum_is_retried(self, db, factory, session_factory, monkeypatch):
        """A bid that loses the race but still clears the new minimum is accepted."""
        auction = await factory.auction(starting_price="100.00", bid_increment="10.00")
        bidder = await factory.user()
        rival = await factory.user()
        await db.commit()
        calls = []

        async def rival_bids_once(session, stale, bidder_id, amount, is_buy_now, now):
            calls.append(stale.version)
            if len(calls) == 1:
                async with session_factory() as other:
                    fresh = await other.get(Auction, stale.id)
                    assert await real_apply_bid(other, fresh, rival.id, Decimal("115.00"), False, now)
                    other.add(AuctionBid(auction_id=fresh.id, bidder_id=rival.id, amount=Decimal("115.00")))
                    await other.commit()
            return await real_apply_bid(session, stale, bidder_id, amount, is_buy_now, now)

        monkeypatch.setattr(auction_service, "apply_bid", rival_bids_once)

        result = await place_bid(db, bidder, auction.id, "200.00")

        assert calls == [0, 1]
        assert result.new_current_bid == Decimal("200.00")
        assert result.minimum_next_bid == Decimal("210.00")

        stored = await db.get(Auction, auction.id, populate_existing=True)
        assert stored.current_bid == Decimal("200.00")
        assert stored.high_bidder_id == bidder.id
        assert stored.bid_count == 2
        assert await count(db, AuctionBid, AuctionBid.auction_id == auction.id) == 2

    @pytest.mark.asyncio
    async def test_bid_gives_up_after_repeated_races(self, db, factory, session_factory, monkeypatch):
        """A bid that loses every attempt is rejected as outbid without being applied."""
        auction = await factory.auction(starting_price="100.00", bid_increment="10.00")
        bidder = await factory.user()
        rival = await factory.user()
        await db.commit()

        async def rival_always_first(session, stale, bidder_id, amount, is_buy_now, now):
            async with session_factory() as other:
                fresh = await other.get(Auction, stale.id)
                assert await real_apply_bid(other, fresh, rival.id, Decimal("115.00"), False, now)
                await other.commit()
            return await real_apply_bid(session, stale, bidder_id, amount, is_buy_now, now)

        monkeypatch.setattr(auction_service, "apply_bid", rival_always_first)

        with pytest.raises(OutbidError):
            await place_bid(db, bidder, auction.id, "200.00")

        stored = await db.get(Auction, auction.id, populate_existing=True)
        assert stored.high_bidder_id == rival.id
        assert stored.bid_count == auction_service.MAX_BID_ATTEMPTS
        assert await count(db, AuctionBid, AuctionBid.bidder_id == bidder.id) == 0

    @pytest.mark.asyncio
    async def test_bid_after_concurrent_close(self, db, factory, session_factory, monkeypatch):
        """A bid racing the close of an ended auction is reported as closed, not outbid."""
        auction = await factory.auction(ends_in=timedelta(minutes=5))
        bidder = await factory.user()
        await db.commit()
        bid_time = utcnow()

        async def sweep_closes_first(session, stale, bidder_id, amount, is_buy_now, now):
            async with session_factory() as other:
                assert await close_auction(other, stale.id, now=bid_time + timedelta(minutes=10)) is not None
                await other.commit()
            return await real_apply_bid(session, stale, bidder_id, amount, is_buy_now, now)

        monkeypatch.setattr(auction_service, "apply_bid", sweep_closes_first)

        with pytest.raises(AuctionClosedError):
            await place_bid(db, bidder, auction.id, "150.00", now=bid_time)

        stored = await db.get(Auction, auction.id, populate_existing=True)
        assert stored.status == AuctionStatus.EXPIRED
        assert stored.bid_count == 0
        assert await count(db, AuctionBid, AuctionBid.auction_id == auction.id) == 0


    @pytest.mark.asyncio
    async def test_competing_buy_now_creates_one_order(self, db, factory, session_factory, monkeypatch):
        """Two buy-now bids: one sale, one order, the other bid rejected."""
        auction = await factory.auction(buy_now_price="500.00")
        bidder = await factory.user()
        rival = await factory.user()
        await db.commit()

        async def rival_buys_first(session, stale, bidder_id, amount, is_buy_now, now):
            monkeypatch.setattr(auction_service, "apply_bid", real_apply_bid)
            async with session_factory() as other:
                rival_user = await other.get(User, rival.id)
                await place_bid(other, rival_user, stale.id, "500.00", now=now)
                await other.commit()
            return await real_apply_bid(session, stale, bidder_id, amount, is_buy_now, now)

        monkeypatch.setattr(auction_service, "apply_bid", rival_buys_first)

        with pytest.raises(AuctionClosedError):
            await place_bid(db, bidder, auction.id, "500.00")

        stored = await db.get(Auction, auction.id, populate_existing=True)
        assert stored.status == AuctionStatus.SOLD
        assert stored.high_bidder_id == rival.id
        assert await count(db, Order, Order.auction_id == auction.id) == 1
        assert await count(db, AuctionBid, AuctionBid.auction_id == auction.id) == 1
