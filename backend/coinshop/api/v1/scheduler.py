"""
CoinShop API - Scheduler Endpoints

Monitor and control the in-process auction sweep scheduler.
"""

from fastapi import APIRouter, Depends, HTTPException

from coinshop.api.deps import require_staff
from coinshop.models.user import User
from coinshop.services.auction_scheduler import get_scheduler

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/status")
async def get_scheduler_status(user: User = Depends(require_staff)):
    """
    Current scheduler state.

    Returns:
        - is_running: Whether the scheduler is active
        - last_sweep: ISO timestamp of the last completed auction sweep
        - last_sweep_closed: Auctions closed by that sweep
        - last_offers_expired: Offers expired by the last offer sweep
        - next_runs: Next scheduled run per job
    """
    return {
        "status": "ok",
        "scheduler": get_scheduler().get_status(),
    }


@router.post("/start")
async def start_scheduler_endpoint(user: User = Depends(require_staff)):
    scheduler = get_scheduler()

    if scheduler.is_running:
        return {
            "status": "already_running",
            "message": "Scheduler is already running",
            "scheduler": scheduler.get_status(),
        }

    try:
        scheduler.start()
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to start scheduler: {str(e)}",
        )
    return {
        "status": "started",
        "message": "Scheduler started successfully",
        "scheduler": scheduler.get_status(),
    }


@router.post("/stop")
async def stop_scheduler_endpoint(user: User = Depends(require_staff)):
    """Stop the scheduler; expired auctions stay open until the next sweep."""
    scheduler = get_scheduler()

    if not scheduler.is_running:
        return {
            "status": "already_stopped",
            "message": "Scheduler is not running",
        }

    try:
        scheduler.stop()
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to stop scheduler: {str(e)}",
        )
    return {
        "status": "stopped",
        "message": "Scheduler stopped successfully",
    }


@router.post("/run-now")
async def run_sweep_now(user: User = Depends(require_staff)):
    """Run one auction sweep immediately, outside the schedule."""
    result = await get_scheduler().run_auction_sweep()
    if result is None:
        raise HTTPException(status_code=500, detail="Auction sweep failed")
    return {
        "status": "ok",
        "closed": len(result.closed),
        "sold": result.sold,
        "expired": result.expired,
    }
