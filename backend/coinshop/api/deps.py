"""
CoinShop - API Dependencies

FastAPI dependency injection for authentication, authorization and the
external collaborators held on ``app.state``.

Callers authenticate with a bearer JWT or an ``X-API-Key`` header. When an
API key is sent it takes precedence and the bearer token is ignored.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.core.config import settings
from coinshop.core.database import get_db
from coinshop.models.user import User, UserRole
from coinshop.services.ai_analyzer import AIAnalyzer
from coinshop.services.auth import decode_token, get_user_by_id, user_for_api_key
from coinshop.services.checkout import PaymentGateway
from coinshop.services.comparables import ComparablesSearcher
from coinshop.services.marketplace import MarketplaceClient
from coinshop.services.metals import MetalsPriceCache, MetalsPriceService
from coinshop.services.training import TrainingDataStore

# auto_error=False lets missing tokens reach get_optional_user
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def _user_from_token(db: AsyncSession, token: str) -> User:
    """Active user named by a bearer token; 401 otherwise."""
    claims = decode_token(token)
    if not claims:
        raise _unauthorized("Invalid or expired token")
    try:
        user_id = UUID(claims.get("sub") or "")
    except ValueError:
        raise _unauthorized("Invalid token subject")

    user = await get_user_by_id(db, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("Account not found or disabled")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Bearer-token user. Raises 401 when missing or invalid."""
    if not credentials:
        raise _unauthorized("Not authenticated")
    return await _user_from_token(db, credentials.credentials)


async def get_current_user_or_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    x_api_key: Optional[str] = Header(None, alias=settings.api_key_header),
    db: AsyncSession = Depends(get_db),
) -> User:
    """API-key user if a key is sent, else the bearer-token user. 401 on failure."""
    if x_api_key:
        user = await user_for_api_key(db, x_api_key)
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
        return user
    return await get_current_user(credentials, db)


async def require_staff(user: User = Depends(get_current_user_or_api_key)) -> User:
    """Admin or staff; 403 otherwise."""
    if not user.is_staff:
        raise _forbidden("Staff access required")
    return user


async def require_admin(user: User = Depends(get_current_user_or_api_key)) -> User:
    if user.role != UserRole.ADMIN:
        raise _forbidden("Admin access required")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    x_api_key: Optional[str] = Header(None, alias=settings.api_key_header),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    The caller if valid credentials are supplied, otherwise None.

    Invalid credentials also yield None, so public endpoints can add
    viewer-specific fields (``is_high_bidder``) without requiring login.
    """
    if x_api_key:
        return await user_for_api_key(db, x_api_key)
    if not credentials:
        return None
    try:
        return await _user_from_token(db, credentials.credentials)
    except HTTPException:
        return None


# =============================================================================
# Collaborators
# =============================================================================


def get_metals_service(request: Request) -> MetalsPriceService:
    """Metals service bound to the app-wide cache."""
    cache = getattr(request.app.state, "metals_cache", None)
    if cache is None:
        cache = MetalsPriceCache(ttl_seconds=settings.metals_cache_seconds)
        request.app.state.metals_cache = cache
    transport = getattr(request.app.state, "metals_transport", None)
    return MetalsPriceService(cache=cache, transport=transport)


def get_payment_gateway(request: Request) -> Optional[PaymentGateway]:
    return getattr(request.app.state, "payment_gateway", None)


def get_marketplace_client(request: Request) -> Optional[MarketplaceClient]:
    return getattr(request.app.state, "marketplace_client", None)


def get_ai_analyzer(request: Request) -> AIAnalyzer:
    analyzer = getattr(request.app.state, "ai_analyzer", None)
    if analyzer is None:
        analyzer = AIAnalyzer()
        request.app.state.ai_analyzer = analyzer
    return analyzer


def get_comparables_searcher(request: Request) -> ComparablesSearcher:
    searcher = getattr(request.app.state, "comparables_searcher", None)
    return searcher or ComparablesSearcher()


def get_training_store(request: Request) -> TrainingDataStore:
    store = getattr(request.app.state, "training_store", None)
    return store or TrainingDataStore()
