"""
CoinShop API - Collection Endpoints
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import get_current_user_or_api_key, get_optional_user
from coinshop.core.clock import ensure_utc
from coinshop.core.database import get_db
from coinshop.models.collection import Collection, CollectionItem
from coinshop.models.user import User
from coinshop.schemas.collection import (
    CollectionCreate,
    CollectionItemCreate,
    CollectionItemResponse,
    CollectionItemUpdate,
    CollectionListResponse,
    CollectionMembershipResponse,
    CollectionResponse,
    CollectionStatsResponse,
    CollectionUpdate,
    PublicCollectionListResponse,
)
from coinshop.schemas.common import MessageResponse, PaginationMeta
from coinshop.services import collections as collection_service
from coinshop.services.collections import CustomItem

router = APIRouter(tags=["collections"])

# Items shown per collection in list views
PREVIEW_ITEMS = 4


def _item_response(item: CollectionItem) -> CollectionItemResponse:
    response = CollectionItemResponse.model_validate(item)
    response.created_at = ensure_utc(item.created_at)
    return response


def _collection_response(
    collection: Collection,
    preview: bool = False,
    with_stats: bool = False,
) -> CollectionResponse:
    items = collection.items[:PREVIEW_ITEMS] if preview else collection.items
    stats = None
    if with_stats:
        stats = CollectionStatsResponse.model_validate(collection_service.collection_stats(collection))
    return CollectionResponse(
        id=collection.id,
        user_id=collection.user_id,
        name=collection.name,
        description=collection.description,
        is_public=collection.is_public,
        item_count=len(collection.items),
        items=[_item_response(i) for i in items],
        stats=stats,
        created_at=ensure_utc(collection.created_at),
        updated_at=ensure_utc(collection.updated_at),
    )


@router.get("/collections", response_model=CollectionListResponse)
async def my_collections(
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    collections = await collection_service.list_user_collections(db, user)
    return CollectionListResponse(collections=[_collection_response(c, preview=True) for c in collections])


@router.get("/collections/public", response_model=PublicCollectionListResponse)
async def public_collections(
    page: int = Query(1, ge=1),
    per_page: int = Query(12, ge=1, le=50),
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Public collections, optionally narrowed to a category slug."""
    collections, total = await collection_service.list_public_collections(
        db, page=page, per_page=per_page, category=category
    )
    return PublicCollectionListResponse(
        data=[_collection_response(c, preview=True) for c in collections],
        meta=PaginationMeta.create(page=page, per_page=per_page, total=total),
    )


@router.post("/collections", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
async def create_collection(
    data: CollectionCreate,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    collection = await collection_service.create_collection(
        db, user, data.name, description=data.description, is_public=data.is_public
    )
    return _collection_response(collection, with_stats=True)


@router.get("/collections/{collection_id}", response_model=CollectionResponse)
async def get_collection(
    collection_id: UUID,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """A collection with all its items. Value stats are shown to the owner only."""
    collection = await collection_service.get_collection(db, collection_id, viewer=user)
    is_owner = user is not None and user.id == collection.user_id
    return _collection_response(collection, with_stats=is_owner)


@router.patch("/collections/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: UUID,
    data: CollectionUpdate,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    collection = await collection_service.update_collection(
        db,
        user,
        collection_id,
        name=data.name,
        description=data.description,
        is_public=data.is_public,
    )
    return _collection_response(collection, with_stats=True)


@router.delete("/collections/{collection_id}", response_model=MessageResponse)
async def delete_collection(
    collection_id: UUID,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    await collection_service.delete_collection(db, user, collection_id)
    return MessageResponse(message="Collection deleted")


@router.post(
    "/collections/{collection_id}/items",
    response_model=CollectionItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_item(
    collection_id: UUID,
    data: CollectionItemCreate,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """Add a shop product (`product_id`) or a piece bought elsewhere (`custom_item`)."""
    custom = CustomItem(**data.custom_item.model_dump()) if data.custom_item else None
    item = await collection_service.add_item(
        db, user, collection_id, product_id=data.product_id, custom=custom
    )
    return _item_response(item)


@router.patch("/collections/{collection_id}/items/{item_id}", response_model=CollectionItemResponse)
async def update_item(
    collection_id: UUID,
    item_id: UUID,
    data: CollectionItemUpdate,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    item = await collection_service.update_item(
        db,
        user,
        item_id,
        current_value=data.current_value,
        custom_description=data.custom_description,
        attributes=data.attributes,
        collection_id=collection_id,
    )
    return _item_response(item)


@router.delete("/collections/{collection_id}/items/{item_id}", response_model=MessageResponse)
async def remove_item(
    collection_id: UUID,
    item_id: UUID,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    await collection_service.remove_item(db, user, item_id, collection_id=collection_id)
    return MessageResponse(message="Item removed")


@router.get("/products/{product_id}/collections", response_model=list[CollectionMembershipResponse])
async def product_collections(
    product_id: UUID,
    user: User = Depends(get_current_user_or_api_key),
    db: AsyncSession = Depends(get_db),
):
    """Which of the caller's collections already hold this product."""
    memberships = await collection_service.product_membership(db, user, product_id)
    return [CollectionMembershipResponse.model_validate(m) for m in memberships]
