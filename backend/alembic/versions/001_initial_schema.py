"""CoinShop initial schema

Revision ID: 001_coinshop_initial
Revises:
Create Date: 2026-10-17

Creates tables for:
- users, api_keys: accounts and programmatic access
- clients, client_sources: consignors and their storefronts
- categories, products, product_images, price_history: catalog
- auctions, auction_bids: auction bidding
- orders, order_items: fixed-price and auction-win orders
- seller_reviews: buyer reviews of consignors
- submissions, submission_images: consignment intake
- metal_prices: spot price snapshots
- platform_connections, platform_listings: external marketplaces
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_coinshop_initial'
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names, matching the ORM's sa.Enum(PyEnum) mapping
user_role = sa.Enum('ADMIN', 'STAFF', 'CLIENT', 'BUYER', name='userrole')
client_status = sa.Enum('PENDING', 'ACTIVE', 'PAUSED', 'TERMINATED', name='clientstatus')
source_type = sa.Enum(
    'WEBSITE', 'EBAY_STORE', 'ETSY_SHOP', 'SHOPIFY', 'SQUARESPACE', 'WOOCOMMERCE',
    'AUCTIONZIP', 'HIBID', 'PROXIBID', 'CSV_IMPORT', 'API',
    name='sourcetype',
)
listing_type = sa.Enum('BUY_NOW', 'AUCTION', 'BOTH', name='listingtype')
product_status = sa.Enum(
    'DRAFT', 'PENDING_REVIEW', 'ACTIVE', 'SOLD', 'RESERVED', 'ARCHIVED',
    name='productstatus',
)
metal_type = sa.Enum('GOLD', 'SILVER', 'PLATINUM', 'PALLADIUM', 'COPPER', 'NONE', name='metaltype')
auction_status = sa.Enum('ACTIVE', 'SOLD', 'EXPIRED', 'CANCELLED', name='auctionstatus')
order_status = sa.Enum(
    'PENDING', 'PAID', 'PROCESSING', 'SHIPPED', 'DELIVERED', 'CANCELLED', 'REFUNDED',
    name='orderstatus',
)
submission_status = sa.Enum(
    'PENDING', 'REVIEWING', 'APPROVED', 'LISTED', 'REJECTED',
    name='submissionstatus',
)
platform = sa.Enum('EBAY', 'ETSY', 'AUCTIONFLEX', name='platform')
listing_status = sa.Enum('ACTIVE', 'ENDED', 'ERROR', name='listingstatus')


def _uuid(name: str, *args, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    # ================================================================
    # CLIENTS (consignors)
    # ================================================================
    op.create_table(
        'clients',
        _uuid('id', primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(50), nullable=True),
        sa.Column('zip', sa.String(20), nullable=True),
        sa.Column('website', sa.String(512), nullable=True),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=False, server_default='15.00'),
        sa.Column('status', client_status, nullable=False, server_default='PENDING'),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_clients_slug', 'clients', ['slug'])
    op.create_index('ix_clients_status', 'clients', ['status'])

    op.create_table(
        'client_sources',
        _uuid('id', primary_key=True),
        _uuid('client_id', sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', source_type, nullable=False),
        sa.Column('url', sa.String(1024), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('scrape_frequency', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('selectors', sa.JSON(), nullable=True),
        sa.Column('config', sa.JSON(), nullable=True),
        sa.Column('last_scraped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_item_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_client_sources_client_id', 'client_sources', ['client_id'])

    # ================================================================
    # USERS / API KEYS
    # ================================================================
    op.create_table(
        'users',
        _uuid('id', primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='BUYER'),
        _uuid('client_id', sa.ForeignKey('clients.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_client_id', 'users', ['client_id'])

    op.create_table(
        'api_keys',
        _uuid('id', primary_key=True),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('key_hash', sa.String(255), nullable=False, unique=True),
        sa.Column('key_prefix', sa.String(16), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index('ix_api_keys_user_id', 'api_keys', ['user_id'])
    op.create_index('ix_api_keys_key_prefix', 'api_keys', ['key_prefix'])

    # ================================================================
    # SUBMISSIONS (before products, which reference them)
    # ================================================================
    op.create_table(
        'submissions',
        _uuid('id', primary_key=True),
        _uuid('client_id', sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('status', submission_status, nullable=False, server_default='PENDING'),
        sa.Column('ai_analysis', sa.JSON(), nullable=True),
        sa.Column('estimated_value', sa.Numeric(10, 2), nullable=True),
        sa.Column('suggested_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('reviewer_notes', sa.Text(), nullable=True),
        sa.Column('analyzed_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_submissions_client_id', 'submissions', ['client_id'])
    op.create_index('ix_submissions_status', 'submissions', ['status'])

    op.create_table(
        'submission_images',
        _uuid('id', primary_key=True),
        _uuid('submission_id', sa.ForeignKey('submissions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('url', sa.String(1024), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_submission_images_submission_id', 'submission_images', ['submission_id'])

    # ================================================================
    # CATALOG
    # ================================================================
    op.create_table(
        'categories',
        _uuid('id', primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        _uuid('parent_id', sa.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
    )

    op.create_table(
        'products',
        _uuid('id', primary_key=True),
        sa.Column('sku', sa.String(100), nullable=False, unique=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('short_description', sa.String(500), nullable=True),
        _uuid('category_id', sa.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('listing_type', listing_type, nullable=False, server_default='BUY_NOW'),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('cost_basis', sa.Numeric(10, 2), nullable=True),
        sa.Column('metal_type', metal_type, nullable=True),
        sa.Column('metal_weight', sa.Numeric(10, 4), nullable=True),
        sa.Column('metal_purity', sa.Numeric(5, 4), nullable=True),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('mint', sa.String(50), nullable=True),
        sa.Column('grade', sa.String(50), nullable=True),
        sa.Column('certification', sa.String(50), nullable=True),
        sa.Column('cert_number', sa.String(100), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', product_status, nullable=False, server_default='DRAFT'),
        _uuid('client_id', sa.ForeignKey('clients.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_consignment', sa.Boolean(), nullable=False, server_default='false'),
        _uuid('submission_id', sa.ForeignKey('submissions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('featured', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_products_title', 'products', ['title'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_status', 'products', ['status'])
    op.create_index('ix_products_client_id', 'products', ['client_id'])
    op.create_index('ix_products_status_featured', 'products', ['status', 'featured'])

    op.create_table(
        'product_images',
        _uuid('id', primary_key=True),
        _uuid('product_id', sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('url', sa.String(1024), nullable=False),
        sa.Column('alt', sa.String(255), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default='false'),
    )
    op.create_index('ix_product_images_product_id', 'product_images', ['product_id'])

    op.create_table(
        'price_history',
        _uuid('id', primary_key=True),
        _uuid('product_id', sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('reason', sa.String(100), nullable=True),
        _created_at(),
    )
    op.create_index('ix_price_history_product_id', 'price_history', ['product_id'])
    op.create_index('ix_price_history_created_at', 'price_history', ['created_at'])

    # ================================================================
    # AUCTIONS
    # ================================================================
    op.create_table(
        'auctions',
        _uuid('id', primary_key=True),
        _uuid('product_id', sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('starting_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('current_bid', sa.Numeric(10, 2), nullable=False),
        sa.Column('bid_increment', sa.Numeric(10, 2), nullable=False),
        sa.Column('reserve_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('buy_now_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', auction_status, nullable=False, server_default='ACTIVE'),
        _uuid('high_bidder_id', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('bid_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_auctions_product_id', 'auctions', ['product_id'])
    op.create_index('ix_auctions_end_time', 'auctions', ['end_time'])
    op.create_index('ix_auctions_high_bidder_id', 'auctions', ['high_bidder_id'])
    op.create_index('ix_auctions_status_end_time', 'auctions', ['status', 'end_time'])

    op.create_table(
        'auction_bids',
        _uuid('id', primary_key=True),
        _uuid('auction_id', sa.ForeignKey('auctions.id', ondelete='CASCADE'), nullable=False),
        _uuid('bidder_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_buy_now', sa.Boolean(), nullable=False, server_default='false'),
        _created_at(),
    )
    op.create_index('ix_auction_bids_bidder_id', 'auction_bids', ['bidder_id'])
    op.create_index('ix_auction_bids_auction_created', 'auction_bids', ['auction_id', 'created_at'])

    # ================================================================
    # ORDERS
    # ================================================================
    op.create_table(
        'orders',
        _uuid('id', primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False, unique=True),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status', order_status, nullable=False, server_default='PENDING'),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False),
        sa.Column('shipping', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('tax', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        _uuid('auction_id', sa.ForeignKey('auctions.id', ondelete='SET NULL'), nullable=True),
        _uuid('winning_bid_id', sa.ForeignKey('auction_bids.id', ondelete='SET NULL'), nullable=True, unique=True),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'order_items',
        _uuid('id', primary_key=True),
        _uuid('order_id', sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        _uuid('product_id', sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    # ================================================================
    # SELLER REVIEWS
    # ================================================================
    op.create_table(
        'seller_reviews',
        _uuid('id', primary_key=True),
        _uuid('seller_id', sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        _uuid('reviewer_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _uuid('order_id', sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('overall_rating', sa.Integer(), nullable=False),
        sa.Column('item_as_described', sa.Integer(), nullable=False),
        sa.Column('shipping_speed', sa.Integer(), nullable=False),
        sa.Column('communication', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('helpful_count', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.CheckConstraint('overall_rating BETWEEN 1 AND 5', name='ck_review_overall'),
        sa.CheckConstraint('item_as_described BETWEEN 1 AND 5', name='ck_review_described'),
        sa.CheckConstraint('shipping_speed BETWEEN 1 AND 5', name='ck_review_shipping'),
        sa.CheckConstraint('communication BETWEEN 1 AND 5', name='ck_review_communication'),
    )
    op.create_index('ix_seller_reviews_seller_id', 'seller_reviews', ['seller_id'])
    op.create_index('ix_seller_reviews_reviewer_id', 'seller_reviews', ['reviewer_id'])

    # ================================================================
    # METAL PRICES
    # ================================================================
    op.create_table(
        'metal_prices',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('gold', sa.Numeric(10, 2), nullable=False),
        sa.Column('silver', sa.Numeric(10, 2), nullable=False),
        sa.Column('platinum', sa.Numeric(10, 2), nullable=False),
        sa.Column('palladium', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('source', sa.String(50), nullable=False, server_default='metals_api'),
        _created_at(),
    )
    op.create_index('ix_metal_prices_created_at', 'metal_prices', ['created_at'])

    # ================================================================
    # MARKETPLACE INTEGRATIONS
    # ================================================================
    op.create_table(
        'platform_connections',
        _uuid('id', primary_key=True),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('platform', platform, nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('account_name', sa.String(255), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint('user_id', 'platform', name='uq_platform_connection_user'),
    )

    op.create_table(
        'platform_listings',
        _uuid('id', primary_key=True),
        _uuid('product_id', sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('platform', platform, nullable=False),
        sa.Column('external_id', sa.String(255), nullable=False),
        sa.Column('url', sa.String(1024), nullable=True),
        sa.Column('status', listing_status, nullable=False, server_default='ACTIVE'),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_platform_listings_product_id', 'platform_listings', ['product_id'])


def downgrade() -> None:
    op.drop_table('platform_listings')
    op.drop_table('platform_connections')
    op.drop_table('metal_prices')
    op.drop_table('seller_reviews')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('auction_bids')
    op.drop_table('auctions')
    op.drop_table('price_history')
    op.drop_table('product_images')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('submission_images')
    op.drop_table('submissions')
    op.drop_table('api_keys')
    op.drop_table('users')
    op.drop_table('client_sources')
    op.drop_table('clients')

    bind = op.get_bind()
    for enum_type in (
        listing_status, platform, submission_status, order_status, auction_status,
        metal_type, product_status, listing_type, source_type, client_status, user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
