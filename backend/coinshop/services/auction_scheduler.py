"""
CoinShop - Background Scheduler

In-process APScheduler jobs for the API server:
- close auctions whose end time has passed
- expire offers and counters past their deadline
- refresh the metals spot price cache
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from coinshop.core.clock import utcnow
from coinshop.core.config import settings
from coinshop.core.database import get_db_context
from coinshop.services.auctions import SweepResult, close_expired_auctions
from coinshop.services.metals import MetalsPriceService
from coinshop.services.offers import expire_stale_offers

logger = logging.getLogger(__name__)


class AuctionScheduler:
    """
    Periodic jobs for auction close, offer expiry and metal prices.

    Jobs use ``max_instances=1`` so a slow sweep never overlaps the next.
    """

    def __init__(
        self,
        session_factory: Callable[[], Any] = get_db_context,
        metals_service: Optional[MetalsPriceService] = None,
        sweep_interval_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.metals_service = metals_service
        self.sweep_interval_seconds = sweep_interval_seconds or settings.auction_sweep_interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.is_running = False
        self.last_sweep: Optional[datetime] = None
        self.last_sweep_closed = 0
        self.last_offers_expired = 0

    def start(self) -> None:
        if self.is_running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_auction_sweep,
            trigger=IntervalTrigger(seconds=self.sweep_interval_seconds),
            id="close_expired_auctions",
            name="Close expired auctions",
            max_instances=1,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_offer_expiry,
            trigger=IntervalTrigger(seconds=settings.offer_sweep_interval_seconds),
            id="expire_stale_offers",
            name="Expire stale offers",
            max_instances=1,
            replace_existing=True,
        )
        if self.metals_service is not None:
            self.scheduler.add_job(
                self.run_metals_refresh,
                trigger=IntervalTrigger(seconds=settings.metals_cache_seconds),
                id="refresh_metal_prices",
                name="Refresh metal prices",
                max_instances=1,
                replace_existing=True,
            )

        self.scheduler.start()
        self.is_running = True
        logger.info(f"Scheduler started (auction sweep every {self.sweep_interval_seconds}s)")

    def stop(self) -> None:
        if not self.is_running or self.scheduler is None:
            logger.warning("Scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self.is_running = False
        logger.info("Scheduler stopped")

    async def run_auction_sweep(self) -> Optional[SweepResult]:
        """Close every auction past its end time; errors are logged, not raised."""
        try:
            async with self.session_factory() as db:
                result = await close_expired_auctions(db)
        except Exception as e:
            logger.error(f"Auction sweep failed: {e}", exc_info=True)
            return None

        self.last_sweep = utcnow()
        self.last_sweep_closed = len(result.closed)
        return result

    async def run_offer_expiry(self) -> Optional[int]:
        try:
            async with self.session_factory() as db:
                expired = await expire_stale_offers(db)
        except Exception as e:
            logger.error(f"Offer expiry failed: {e}", exc_info=True)
            return None

        self.last_offers_expired = expired
        return expired

    async def run_metals_refresh(self) -> None:
        try:
            async with self.session_factory() as db:
                prices = await self.metals_service.refresh(db)
            logger.info(f"Metal prices refreshed (source={prices.source})")
        except Exception as e:
            logger.error(f"Metal price refresh failed: {e}", exc_info=True)

    def get_next_run_times(self) -> dict[str, Optional[str]]:
        """Next scheduled run per job name."""
        if not self.is_running or self.scheduler is None:
            return {}
        return {
            job.name: job.next_run_time.isoformat() if job.next_run_time else None
            for job in self.scheduler.get_jobs()
        }

    def get_status(self) -> dict[str, Any]:
        next_runs = self.get_next_run_times()
        return {
            "is_running": self.is_running,
            "last_sweep": self.last_sweep.isoformat() if self.last_sweep else None,
            "last_sweep_closed": self.last_sweep_closed,
            "last_offers_expired": self.last_offers_expired,
            "next_runs": next_runs,
            "jobs_count": len(next_runs),
        }


# Global scheduler instance
_scheduler: Optional[AuctionScheduler] = None


def get_scheduler() -> AuctionScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AuctionScheduler()
    return _scheduler


async def start_scheduler(metals_service: Optional[MetalsPriceService] = None) -> AuctionScheduler:
    """Start the global scheduler, attaching the metals refresh job if given."""
    scheduler = get_scheduler()
    if metals_service is not None:
        scheduler.metals_service = metals_service
    scheduler.start()
    return scheduler


async def stop_scheduler() -> None:
    if _scheduler is not None and _scheduler.is_running:
        _scheduler.stop()


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level, format=settings.log_format)

    async def main():
        scheduler = get_scheduler()
        scheduler.start()
        logger.info("Scheduler is running. Press Ctrl+C to stop.")
        try:
            while True:
                await asyncio.sleep(60)
        except (KeyboardInterrupt, asyncio.CancelledError):
            scheduler.stop()

    asyncio.run(main())
