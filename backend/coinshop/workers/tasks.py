"""
CoinShop - Celery Tasks

Periodic jobs for worker deployments: auction close, offer expiry and the
metal price refresh. Tasks are not retried: the beat schedule runs them
again shortly.
"""

import asyncio
import logging
from typing import Any, Optional

from coinshop.core.config import settings
from coinshop.core.database import get_db_context
from coinshop.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

# One loop per worker process; the engine's pooled connections are bound to it
_loop: Optional[asyncio.AbstractEventLoop] = None


def run_async(coro):
    """Helper to run async functions in Celery tasks."""
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_loop)
    return _loop.run_until_complete(coro)


@celery_app.task
def close_expired_auctions() -> dict[str, Any]:
    """Close every auction past its end time."""

    async def _run():
        from coinshop.services.auctions import close_expired_auctions as sweep_auctions

        async with get_db_context() as db:
            sweep = await sweep_auctions(db)

        return {
            "closed": len(sweep.closed),
            "sold": sweep.sold,
            "expired": sweep.expired,
            "orders": [str(r.order_id) for r in sweep.closed if r.order_id],
        }

    try:
        return run_async(_run())
    except Exception as e:
        logger.error(f"Auction sweep task failed: {e}", exc_info=True)
        return {"error": str(e)}


@celery_app.task
def refresh_metal_prices() -> dict[str, Any]:
    """
    Poll the spot price feed and store a snapshot.

    Worker processes do not share the API's in-memory cache, so this only
    keeps the database fallback fresh.
    """

    async def _run():
        from coinshop.services.metals import MetalsPriceCache, MetalsPriceService

        service = MetalsPriceService(cache=MetalsPriceCache(settings.metals_cache_seconds))
        async with get_db_context() as db:
            prices = await service.refresh(db)
        return prices.to_dict()

    try:
        return run_async(_run())
    except Exception as e:
        logger.error(f"Metal price refresh task failed: {e}", exc_info=True)
        return {"error": str(e)}


@celery_app.task
def expire_stale_offers() -> dict[str, Any]:
    """Expire pending offers and counters past their deadline."""

    async def _run():
        from coinshop.services.offers import expire_stale_offers as expire_offers

        async with get_db_context() as db:
            expired = await expire_offers(db)
        return {"expired": expired}

    try:
        return run_async(_run())
    except Exception as e:
        logger.error(f"Offer expiry task failed: {e}", exc_info=True)
        return {"error": str(e)}
