"""
CoinShop - FastAPI Application

Main entry point for the CoinShop API server.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coinshop.api.v1 import api_router
from coinshop.core.config import settings
from coinshop.core.database import AsyncSessionLocal, check_db, close_db, init_db
from coinshop.core.exceptions import CoinShopError
from coinshop.services.metals import MetalsPriceCache, MetalsPriceService

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format=settings.log_format,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    try:
        await init_db()
        logger.info("Database tables initialized")
    except Exception as e:
        logger.warning(f"Database initialization failed: {e}")

    app.state.metals_cache = MetalsPriceCache(ttl_seconds=settings.metals_cache_seconds)

    # Auction sweep scheduler (tests drive closes explicitly)
    app.state.scheduler = None
    if settings.auction_scheduler_enabled and settings.environment != "test":
        try:
            from coinshop.services.auction_scheduler import start_scheduler

            app.state.scheduler = await start_scheduler(
                MetalsPriceService(cache=app.state.metals_cache)
            )
        except Exception as e:
            logger.warning(f"Failed to start auction scheduler: {e}")
    else:
        logger.info("Auction scheduler disabled")

    yield

    logger.info("Shutting down...")

    if app.state.scheduler:
        try:
            from coinshop.services.auction_scheduler import stop_scheduler

            await stop_scheduler()
        except Exception as e:
            logger.warning(f"Error stopping scheduler: {e}")

    try:
        await close_db()
    except Exception as e:
        logger.warning(f"Error closing database connections: {e}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Coin and bullion storefront, consignment portal and auction house",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Configure CORS - explicit origins only
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CoinShopError)
async def coinshop_error_handler(request: Request, exc: CoinShopError):
    """Render domain errors as {"error": {code, message, details}}."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
            }
        },
    )


# Include API routes
app.include_router(api_router)


@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint for load balancers and monitoring.

    Answers 503 when the database cannot be reached.
    """
    started = time.perf_counter()
    try:
        async with AsyncSessionLocal() as session:
            await check_db(session)
        database = {
            "status": "healthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        }
    except Exception as e:
        logger.error(f"Health check database failure: {e}")
        database = {"status": "unhealthy", "error": "Database unavailable"}

    healthy = database["status"] == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "app": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "database": database,
        },
    )


@app.get("/", tags=["root"])
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs" if settings.debug else "Disabled in production",
        "api_base": "/api/v1",
        "endpoints": {
            "auctions": "/api/v1/auctions",
            "search": "/api/v1/search",
            "metals": "/api/v1/metals",
            "submissions": "/api/v1/submissions",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coinshop.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
