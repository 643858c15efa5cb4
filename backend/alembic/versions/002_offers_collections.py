"""Buyer offers and collections

Revision ID: 002_offers_collections
Revises: 001_coinshop_initial
Create Date: 2026-10-17

Creates tables for:
- offers: buyer offers on fixed-price products and seller counters
- collections, collection_items: buyer-curated collections
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '002_offers_collections'
down_revision = '001_coinshop_initial'
branch_labels = None
depends_on = None

offer_status = sa.Enum(
    'PENDING', 'ACCEPTED', 'DECLINED', 'COUNTERED', 'EXPIRED', 'WITHDRAWN',
    name='offerstatus',
)


def _uuid(name: str, *args, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    # ================================================================
    # OFFERS
    # ================================================================
    op.create_table(
        'offers',
        _uuid('id', primary_key=True),
        _uuid('product_id', sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        _uuid('buyer_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _uuid('seller_client_id', sa.ForeignKey('clients.id', ondelete='SET NULL'), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', offer_status, nullable=False, server_default='PENDING'),
        sa.Column('counter_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('counter_message', sa.Text(), nullable=True),
        sa.Column('counter_expires_at', sa.DateTime(timezone=True), nullable=True),
        _uuid('order_id', sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_offers_product_id', 'offers', ['product_id'])
    op.create_index('ix_offers_buyer_id', 'offers', ['buyer_id'])
    op.create_index('ix_offers_seller_client_id', 'offers', ['seller_client_id'])
    op.create_index('ix_offers_status_expires_at', 'offers', ['status', 'expires_at'])

    # ================================================================
    # COLLECTIONS
    # ================================================================
    op.create_table(
        'collections',
        _uuid('id', primary_key=True),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_collections_user_id', 'collections', ['user_id'])

    op.create_table(
        'collection_items',
        _uuid('id', primary_key=True),
        _uuid('collection_id', sa.ForeignKey('collections.id', ondelete='CASCADE'), nullable=False),
        _uuid('product_id', sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('custom_title', sa.String(500), nullable=True),
        sa.Column('custom_description', sa.Text(), nullable=True),
        sa.Column('custom_category', sa.String(100), nullable=True),
        sa.Column('custom_images', sa.JSON(), nullable=False),
        sa.Column('purchase_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('purchase_date', sa.Date(), nullable=True),
        sa.Column('current_value', sa.Numeric(10, 2), nullable=True),
        sa.Column('attributes', sa.JSON(), nullable=True),
        _created_at(),
        sa.UniqueConstraint('collection_id', 'product_id', name='uq_collection_item_product'),
    )
    op.create_index('ix_collection_items_collection_id', 'collection_items', ['collection_id'])


def downgrade() -> None:
    op.drop_table('collection_items')
    op.drop_table('collections')
    op.drop_table('offers')
    offer_status.drop(op.get_bind(), checkfirst=True)
