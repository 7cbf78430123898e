"""checkout schema: products, cart, addresses, shipping rules, orders and commit log

Revision ID: 7a41c2d9e310
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '7a41c2d9e310'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user_profile',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True, unique=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(15), nullable=True),
        sa.Column('role', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'product',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('image_url', sa.String(255), nullable=True),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'address',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profile.id'), nullable=False),
        sa.Column('house_no', sa.String(50), nullable=False),
        sa.Column('street', sa.String(255), nullable=False),
        sa.Column('landmark', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(100), nullable=False),
        sa.Column('postal_code', sa.String(20), nullable=False),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('mobile_number', sa.String(20), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_address_user_id', 'address', ['user_id'])
    op.create_table(
        'cart_item',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profile.id'), nullable=False),
        sa.Column('product_id', sa.BigInteger(), sa.ForeignKey('product.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('added_at', sa.DateTime(), nullable=True),
        sa.Column('last_updated', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_cart_item_user_product'),
        sa.CheckConstraint('quantity >= 1', name='ck_cart_item_quantity_positive'),
    )
    op.create_index('ix_cart_item_user_id', 'cart_item', ['user_id'])
    op.create_table(
        'shipping_rule',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('min_order_value', sa.Numeric(10, 2), nullable=False),
        sa.Column('charge', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )
    op.create_table(
        'orders',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('user_profile.id'), nullable=False),
        sa.Column('shipping_address', sa.Text(), nullable=False),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('shipping_fee', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(30), nullable=True),
        sa.Column('payment_method', sa.String(10), nullable=False),
        sa.Column('gateway_order_id', sa.String(64), nullable=True),
        sa.Column('gateway_payment_id', sa.String(64), nullable=True),
        sa.Column('idempotency_token', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('idempotency_token', name='uq_orders_idempotency_token'),
        sa.UniqueConstraint('gateway_order_id', name='uq_orders_gateway_order_id'),
        sa.UniqueConstraint('gateway_payment_id', name='uq_orders_gateway_payment_id'),
    )
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])
    op.create_table(
        'order_item',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('order_id', sa.BigInteger(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('product_id', sa.BigInteger(), sa.ForeignKey('product.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_at_purchase', sa.Numeric(10, 2), nullable=False),
    )
    op.create_index('ix_order_item_order_id', 'order_item', ['order_id'])
    op.create_table(
        'order_commit_log',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('attempt_token', sa.String(64), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('order_id', sa.BigInteger(), nullable=True),
        sa.Column('step', sa.String(30), nullable=False),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_order_commit_log_attempt_token', 'order_commit_log', ['attempt_token'])


def downgrade():
    op.drop_index('ix_order_commit_log_attempt_token', table_name='order_commit_log')
    op.drop_table('order_commit_log')
    op.drop_index('ix_order_item_order_id', table_name='order_item')
    op.drop_table('order_item')
    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_table('orders')
    op.drop_table('shipping_rule')
    op.drop_index('ix_cart_item_user_id', table_name='cart_item')
    op.drop_table('cart_item')
    op.drop_index('ix_address_user_id', table_name='address')
    op.drop_table('address')
    op.drop_table('product')
    op.drop_table('user_profile')
