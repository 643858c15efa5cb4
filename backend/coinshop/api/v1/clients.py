"""
CoinShop API - Consignment Client Endpoints (staff)

Client CRUD and the scrape-source configuration each client owns.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.api.deps import require_admin, require_staff
from coinshop.core.database import get_db
from coinshop.models.client import ClientStatus
from coinshop.models.user import User
from coinshop.schemas.client import (
    ClientCreate,
    ClientDetailResponse,
    ClientListItem,
    ClientListResponse,
    ClientUpdate,
    SourceCreate,
    SourceResponse,
    SourceUpdate,
)
from coinshop.services.clients import (
    create_client,
    create_source,
    delete_client,
    delete_source,
    get_client,
    list_clients,
    list_sources,
    update_client,
    update_source,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("", response_model=ClientListResponse)
async def get_clients(
    client_status: Optional[ClientStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    rows = await list_clients(db, status=client_status, search=search)
    data = []
    for client, product_count in rows:
        item = ClientListItem.model_validate(client)
        item.product_count = product_count
        data.append(item)
    return ClientListResponse(data=data, total=len(data))


@router.post("", response_model=ClientDetailResponse, status_code=status.HTTP_201_CREATED)
async def add_client(
    data: ClientCreate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    client = await create_client(db, data.model_dump())
    client = await get_client(db, client.id)
    return ClientDetailResponse.model_validate(client)


@router.get("/{client_id}", response_model=ClientDetailResponse)
async def get_client_detail(
    client_id: UUID,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    client = await get_client(db, client_id)
    return ClientDetailResponse.model_validate(client)


@router.patch("/{client_id}", response_model=ClientDetailResponse)
async def edit_client(
    client_id: UUID,
    data: ClientUpdate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Update a client; renaming regenerates the slug."""
    client = await update_client(db, client_id, data.model_dump(exclude_unset=True))
    return ClientDetailResponse.model_validate(client)


@router.delete("/{client_id}", status_code=status.HTTP_200_OK)
async def remove_client(
    client_id: UUID,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await delete_client(db, client_id)
    logger.info(f"Client {client_id} deleted by {user.email}")
    return {"message": "Client deleted"}


# =============================================================================
# Sources
# =============================================================================


@router.get("/{client_id}/sources", response_model=list[SourceResponse])
async def get_sources(
    client_id: UUID,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    sources = await list_sources(db, client_id)
    return [SourceResponse.model_validate(s) for s in sources]


@router.post(
    "/{client_id}/sources",
    response_model=SourceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_source(
    client_id: UUID,
    data: SourceCreate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    source = await create_source(db, client_id, data.model_dump())
    return SourceResponse.model_validate(source)


@router.patch("/{client_id}/sources/{source_id}", response_model=SourceResponse)
async def edit_source(
    client_id: UUID,
    source_id: UUID,
    data: SourceUpdate,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    source = await update_source(db, client_id, source_id, data.model_dump(exclude_unset=True))
    return SourceResponse.model_validate(source)


@router.delete("/{client_id}/sources/{source_id}", status_code=status.HTTP_200_OK)
async def remove_source(
    client_id: UUID,
    source_id: UUID,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    await delete_source(db, client_id, source_id)
    return {"message": "Source deleted"}
