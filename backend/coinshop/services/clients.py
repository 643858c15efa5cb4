"""
CoinShop - Consignment Client Service

Admin CRUD over consignors and their scrape-source configuration.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coinshop.core.exceptions import NotFoundError, ValidationError
from coinshop.models.client import Client, ClientSource, ClientStatus, SourceType
from coinshop.models.product import Product
from coinshop.services.catalog import slugify

logger = logging.getLogger(__name__)


async def unique_slug(db: AsyncSession, name: str, exclude_id: Optional[UUID] = None) -> str:
    """Slug for ``name``, suffixed ``-2``, ``-3``... until unused."""
    base = slugify(name)
    if not base:
        raise ValidationError("Name must contain letters or digits")

    query = select(Client.slug).where(
        (Client.slug == base) | Client.slug.like(f"{base}-%")
    )
    if exclude_id is not None:
        query = query.where(Client.id != exclude_id)
    taken = set((await db.execute(query)).scalars().all())

    slug, n = base, 2
    while slug in taken:
        slug = f"{base}-{n}"
        n += 1
    return slug


async def create_client(db: AsyncSession, data: dict[str, Any]) -> Client:
    if not data.get("name") or not data.get("email"):
        raise ValidationError("Name and email are required")

    client = Client(slug=await unique_slug(db, data["name"]), **data)
    db.add(client)
    await db.flush()

    logger.info(f"Created client {client.slug}")
    return client


async def get_client(db: AsyncSession, client_id: UUID) -> Client:
    result = await db.execute(
        select(Client)
        .where(Client.id == client_id)
        .options(selectinload(Client.sources))
        .execution_options(populate_existing=True)
    )
    client = result.scalar_one_or_none()
    if client is None:
        raise NotFoundError("Client not found")
    return client


async def list_clients(
    db: AsyncSession,
    status: Optional[ClientStatus] = None,
    search: Optional[str] = None,
) -> list[tuple[Client, int]]:
    """Clients with their product counts, alphabetical."""
    product_count = (
        select(func.count(Product.id))
        .where(Product.client_id == Client.id)
        .correlate(Client)
        .scalar_subquery()
    )
    query = select(Client, product_count)
    if status is not None:
        query = query.where(Client.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.where(Client.name.ilike(pattern) | Client.email.ilike(pattern))

    result = await db.execute(query.order_by(Client.name))
    return [(client, count or 0) for client, count in result.all()]


async def update_client(db: AsyncSession, client_id: UUID, changes: dict[str, Any]) -> Client:
    client = await get_client(db, client_id)
    if "name" in changes and changes["name"] and changes["name"] != client.name:
        client.slug = await unique_slug(db, changes["name"], exclude_id=client.id)
    for key, value in changes.items():
        setattr(client, key, value)
    await db.flush()
    return await get_client(db, client_id)


async def delete_client(db: AsyncSession, client_id: UUID) -> None:
    client = await get_client(db, client_id)
    await db.delete(client)
    await db.flush()
    logger.info(f"Deleted client {client.slug}")


# =============================================================================
# Sources
# =============================================================================


def parse_source_type(value: str) -> SourceType:
    try:
        return SourceType(value)
    except ValueError:
        raise ValidationError(
            f"Invalid source type '{value}'",
            details={"allowed": [t.value for t in SourceType]},
        )


async def list_sources(db: AsyncSession, client_id: UUID) -> list[ClientSource]:
    await get_client(db, client_id)
    result = await db.execute(
        select(ClientSource)
        .where(ClientSource.client_id == client_id)
        .order_by(ClientSource.created_at)
    )
    return list(result.scalars().all())


async def create_source(db: AsyncSession, client_id: UUID, data: dict[str, Any]) -> ClientSource:
    await get_client(db, client_id)
    if not data.get("name") or not data.get("url"):
        raise ValidationError("Name and url are required")

    source = ClientSource(
        client_id=client_id,
        name=data["name"],
        type=parse_source_type(data.get("type", "")),
        url=data["url"],
        is_active=data.get("is_active", True),
        scrape_frequency=data.get("scrape_frequency") or 60,
        selectors=data.get("selectors"),
        config=data.get("config"),
    )
    db.add(source)
    await db.flush()
    return source


async def _get_source(db: AsyncSession, client_id: UUID, source_id: UUID) -> ClientSource:
    source = await db.get(ClientSource, source_id)
    if source is None or source.client_id != client_id:
        raise NotFoundError("Source not found")
    return source


async def update_source(
    db: AsyncSession,
    client_id: UUID,
    source_id: UUID,
    changes: dict[str, Any],
) -> ClientSource:
    source = await _get_source(db, client_id, source_id)
    if "type" in changes:
        changes["type"] = parse_source_type(changes["type"])
    for key, value in changes.items():
        setattr(source, key, value)
    await db.flush()
    return source


async def delete_source(db: AsyncSession, client_id: UUID, source_id: UUID) -> None:
    source = await _get_source(db, client_id, source_id)
    await db.delete(source)
    await db.flush()
