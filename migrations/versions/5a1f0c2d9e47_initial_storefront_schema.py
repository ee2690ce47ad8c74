"""initial storefront schema

Revision ID: 5a1f0c2d9e47
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '5a1f0c2d9e47'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(10, 2, asdecimal=True)


def upgrade():
    op.create_table(
        'user_profile',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='customer'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', MONEY, nullable=False),
        sa.Column('original_price', MONEY, nullable=True),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('image', sa.String(500), nullable=True),
        sa.Column('rating', sa.Float(), nullable=False, server_default='0'),
        sa.Column('review_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
    )
    op.create_index('ix_products_category', 'products', ['category'])

    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profile.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('subtotal', MONEY, nullable=False),
        sa.Column('tax', MONEY, nullable=False),
        sa.Column('shipping', MONEY, nullable=False),
        sa.Column('total', MONEY, nullable=False),
        sa.Column('shipping_address', sa.JSON(), nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('carrier', sa.String(100), nullable=True),
        sa.Column('estimated_delivery', sa.Date(), nullable=True),
        sa.Column('shipped_at', sa.DateTime(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_id', sa.String(36), nullable=False),
        sa.Column('product_name', sa.String(200), nullable=False),
        sa.Column('product_image', sa.String(500), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', MONEY, nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'product_reviews',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profile.id'), nullable=True),
        sa.Column('user_name', sa.String(100), nullable=False),
        sa.Column('user_email', sa.String(255), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(200), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_verified_purchase', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('helpful_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_product_reviews_rating_range'),
    )
    op.create_index('ix_product_reviews_product_created', 'product_reviews', ['product_id', 'created_at'])

    op.create_table(
        'review_votes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profile.id'), nullable=False),
        sa.Column('review_id', sa.String(36), sa.ForeignKey('product_reviews.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'review_id', name='uq_review_votes_user_review'),
    )

    op.create_table(
        'wishlists',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profile.id'), nullable=False),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_wishlists_user_product'),
    )


def downgrade():
    op.drop_table('wishlists')
    op.drop_table('review_votes')
    op.drop_index('ix_product_reviews_product_created', table_name='product_reviews')
    op.drop_table('product_reviews')
    op.drop_index('ix_order_items_product_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_products_category', table_name='products')
    op.drop_table('products')
    op.drop_table('user_profile')
