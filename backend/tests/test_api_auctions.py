"""
CoinShop - Auction API Tests

End-to-end checks of the auction endpoints, including the error envelope
bidders see when a bid is refused.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from coinshop.core.clock import utcnow
from coinshop.models.auction import AuctionStatus


class TestAuctionDiscovery:
    """Listing and detail."""

    @pytest.mark.asyncio
    async def test_list_active(self, api_client, factory, db):
        """Only open auctions are listed, with pagination meta."""
        await factory.auction(ends_in=timedelta(hours=3))
        await factory.auction(ends_in=timedelta(hours=1))
        await factory.auction(status=AuctionStatus.SOLD)
        await db.commit()

        response = await api_client.get("/api/v1/auctions", params={"per_page": 1})

        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["total"] == 2
        assert len(body["data"]) == 1
        assert body["data"][0]["minimum_next_bid"] == 105.0

    @pytest.mark.asyncio
    async def test_detail_hides_reserve_amount(self, api_client, factory, db, auth_headers):
        """Detail shows reserve status and viewer flags, never the reserve."""
        auction = await factory.auction(reserve_price="300.00")
        bidder = await factory.user(name="Ada")
        await db.commit()

        await api_client.post(
            f"/api/v1/auctions/{auction.id}/bids", json={"amount": "150.00"}, headers=auth_headers(bidder)
        )
        response = await api_client.get(f"/api/v1/auctions/{auction.id}", headers=auth_headers(bidder))

        assert response.status_code == 200
        body = response.json()
        assert "reserve_price" not in body
        assert body["has_reserve"] is True
        assert body["reserve_met"] is False
        assert body["is_high_bidder"] is True
        assert body["high_bidder_name"] == "Ada"
        assert [b["amount"] for b in body["recent_bids"]] == [150.0]

        anonymous = (await api_client.get(f"/api/v1/auctions/{auction.id}")).json()
        assert anonymous["is_high_bidder"] is False

    @pytest.mark.asyncio
    async def test_unknown_auction(self, api_client):
        """Missing auctions answer 404 in the error envelope."""
        response = await api_client.get(f"/api/v1/auctions/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestBidEndpoint:
    """POST /auctions/{id}/bids."""

    @pytest.mark.asyncio
    async def test_bid_accepted(self, api_client, factory, db, auth_headers):
        """An accepted bid answers 201 with the next minimum."""
        auction = await factory.auction()
        bidder = await factory.user()
        await db.commit()

        response = await api_client.post(
            f"/api/v1/auctions/{auction.id}/bids", json={"amount": 105}, headers=auth_headers(bidder)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["new_current_bid"] == 105.0
        assert body["minimum_next_bid"] == 110.0
        assert body["is_buy_now"] is False
        assert body["order_id"] is None

        history = (await api_client.get(f"/api/v1/auctions/{auction.id}/bids")).json()
        assert [b["bidder_id"] for b in history["bids"]] == [str(bidder.id)]

    @pytest.mark.asyncio
    async def test_minimum_not_met(self, api_client, factory, db, auth_headers):
        """A low bid answers 400 with the minimum to retry at."""
        auction = await factory.auction()
        bidder = await factory.user()
        await db.commit()

        response = await api_client.post(
            f"/api/v1/auctions/{auction.id}/bids", json={"amount": "101.00"}, headers=auth_headers(bidder)
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "minimum_not_met"
        assert error["details"] == {"minimum_bid": 105.0}

    @pytest.mark.asyncio
    async def test_buy_now_creates_order(self, api_client, factory, db, auth_headers):
        """A buy-now bid answers with the order and closes the auction."""
        auction = await factory.auction(buy_now_price="250.00")
        bidder = await factory.user()
        late = await factory.user()
        await db.commit()

        response = await api_client.post(
            f"/api/v1/auctions/{auction.id}/bids", json={"amount": "250.00"}, headers=auth_headers(bidder)
        )
        assert response.status_code == 201
        assert response.json()["is_buy_now"] is True
        assert response.json()["order_id"] is not None

        response = await api_client.post(
            f"/api/v1/auctions/{auction.id}/bids", json={"amount": "300.00"}, headers=auth_headers(late)
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "auction_closed"

    @pytest.mark.asyncio
    async def test_self_bid_forbidden(self, api_client, factory, db, auth_headers):
        """Consignors bidding on their own item get 403."""
        client = await factory.client()
        auction = await factory.auction(product=await factory.product(client=client))
        consignor = await factory.consignor(client)
        await db.commit()

        response = await api_client.post(
            f"/api/v1/auctions/{auction.id}/bids", json={"amount": "200.00"}, headers=auth_headers(consignor)
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "self_bid"

    @pytest.mark.asyncio
    async def test_bad_requests(self, api_client, factory, db, auth_headers):
        """Auth, unknown auctions and malformed amounts are rejected."""
        auction = await factory.auction()
        bidder = await factory.user()
        await db.commit()
        url = f"/api/v1/auctions/{auction.id}/bids"

        assert (await api_client.post(url, json={"amount": "200.00"})).status_code == 401

        response = await api_client.post(
            f"/api/v1/auctions/{uuid4()}/bids", json={"amount": "200.00"}, headers=auth_headers(bidder)
        )
        assert response.status_code == 404

        response = await api_client.post(url, json={"amount": "lots"}, headers=auth_headers(bidder))
        assert response.status_code == 422

        response = await api_client.post(url, json={"amount": "-5"}, headers=auth_headers(bidder))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"


class TestStaffActions:
    """Opening, sweeping and cancelling auctions."""

    @pytest.mark.asyncio
    async def test_open_auction(self, api_client, factory, db, auth_headers):
        """Staff open auctions; buyers are refused."""
        staff = await factory.staff()
        buyer = await factory.user()
        product = await factory.product()
        await db.commit()
        payload = {
            "product_id": str(product.id),
            "starting_price": "40.00",
            "end_time": (utcnow() + timedelta(days=2)).isoformat(),
        }

        response = await api_client.post("/api/v1/auctions", json=payload, headers=auth_headers(buyer))
        assert response.status_code == 403

        response = await api_client.post("/api/v1/auctions", json=payload, headers=auth_headers(staff))
        assert response.status_code == 201
        assert response.json()["bid_increment"] == 5.0
        assert response.json()["status"] == "active"

        response = await api_client.post("/api/v1/auctions", json=payload, headers=auth_headers(staff))
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_close_expired(self, api_client, factory, db, auth_headers):
        """The manual sweep reports what it closed."""
        staff = await factory.staff()
        await factory.auction(ends_in=timedelta(minutes=-10))
        await db.commit()

        response = await api_client.post("/api/v1/auctions/close-expired", headers=auth_headers(staff))

        assert response.status_code == 200
        body = response.json()
        assert body["closed"] == 1
        assert body["expired"] == 1
        assert body["results"][0]["status"] == "expired"

    @pytest.mark.asyncio
    async def test_cancel(self, api_client, factory, db, auth_headers):
        """Cancel is staff-only and only once."""
        staff = await factory.staff()
        auction = await factory.auction()
        await db.commit()
        url = f"/api/v1/auctions/{auction.id}/cancel"

        response = await api_client.post(url, headers=auth_headers(staff))
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        response = await api_client.post(url, headers=auth_headers(staff))
        assert response.status_code == 409
