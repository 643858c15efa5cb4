"""CoinShop API v1 - REST API endpoints."""

from fastapi import APIRouter

from coinshop.api.v1.admin import router as admin_router
from coinshop.api.v1.analysis import router as analysis_router
from coinshop.api.v1.auctions import router as auctions_router
from coinshop.api.v1.auth import router as auth_router
from coinshop.api.v1.clients import router as clients_router
from coinshop.api.v1.collections import router as collections_router
from coinshop.api.v1.integrations import router as integrations_router
from coinshop.api.v1.metals import router as metals_router
from coinshop.api.v1.offers import router as offers_router
from coinshop.api.v1.orders import router as orders_router
from coinshop.api.v1.products import router as products_router
from coinshop.api.v1.reviews import router as reviews_router
from coinshop.api.v1.scheduler import router as scheduler_router
from coinshop.api.v1.search import router as search_router
from coinshop.api.v1.submissions import router as submissions_router
from coinshop.api.v1.training import router as training_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth_router)
api_router.include_router(auctions_router)
api_router.include_router(products_router)
api_router.include_router(search_router)
api_router.include_router(metals_router)
api_router.include_router(reviews_router)
api_router.include_router(orders_router)
api_router.include_router(offers_router)
api_router.include_router(collections_router)
api_router.include_router(submissions_router)
api_router.include_router(analysis_router)
api_router.include_router(clients_router)
api_router.include_router(integrations_router)
api_router.include_router(training_router)
api_router.include_router(admin_router)
api_router.include_router(scheduler_router)

__all__ = ["api_router"]
