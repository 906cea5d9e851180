"""Create collaboration lifecycle and storefront tables

This migration adds:
1. users, influencer_profiles, notifications
2. campaigns, campaign_deliverable_templates, campaign_metrics
3. collaborations (one live row per campaign/influencer pair)
4. deliverables, campaign_content
5. products, customers, orders, order_items

Revision ID: 001_collaboration_lifecycle
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_collaboration_lifecycle'
down_revision = None
branch_labels = None
depends_on = None


USER_TYPE = sa.Enum('brand', 'influencer', 'customer', 'admin', name='usertype')
CAMPAIGN_STATUS = sa.Enum(
    'draft', 'request', 'influencer-invite', 'brand-invite', 'active', 'completed', 'cancelled',
    name='campaignstatusdb'
)
COLLABORATION_STATUS = sa.Enum(
    'request', 'influencer-invite', 'brand-invite', 'active', 'completed', 'cancelled',
    name='collaborationstatusdb'
)
DELIVERABLE_STATUS = sa.Enum('pending', 'submitted', 'approved', 'rejected', 'published', name='deliverablestatusdb')
CONTENT_STATUS = sa.Enum('submitted', 'approved', 'rejected', 'published', name='contentstatusdb')
PRODUCT_STATUS = sa.Enum('active', 'inactive', 'out_of_stock', 'discontinued', name='productstatusdb')
ORDER_STATUS = sa.Enum('pending', 'paid', 'shipped', 'delivered', 'cancelled', name='orderstatusdb')
ATTRIBUTION_STATUS = sa.Enum('pending', 'paid', 'cancelled', name='attributionstatusdb')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    ]


def upgrade():
    # 1. Identity
    op.create_table('users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False, server_default=''),
        sa.Column('name', sa.String(255)),
        sa.Column('user_type', USER_TYPE, server_default='brand'),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('influencer_profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('niche', sa.String(100)),
        sa.Column('referral_code', sa.String(32), nullable=False),
        sa.Column('total_followers', sa.Integer, server_default='0'),
        sa.Column('channels', sa.JSON),
        *_timestamps(),
    )
    op.create_index('ix_influencer_profiles_referral_code', 'influencer_profiles', ['referral_code'], unique=True)

    op.create_table('notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('recipient_type', sa.String(20), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text),
        sa.Column('related_id', sa.String(36)),
        sa.Column('data', sa.JSON),
        sa.Column('read', sa.Boolean, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    # 2. Campaigns
    op.create_table('campaigns',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('brand_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('status', CAMPAIGN_STATUS, nullable=False, server_default='draft'),
        sa.Column('budget', sa.Numeric(12, 3), server_default='0'),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('start_date', sa.DateTime),
        sa.Column('end_date', sa.DateTime),
        sa.Column('required_channels', sa.JSON),
        sa.Column('min_followers', sa.Integer, server_default='0'),
        *_timestamps(),
        sa.Column('completed_at', sa.DateTime),
        sa.CheckConstraint('commission_rate >= 0 AND commission_rate <= 100', name='ck_campaign_commission_rate'),
    )
    op.create_index('ix_campaigns_brand_id', 'campaigns', ['brand_id'])

    op.create_table('campaign_deliverable_templates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('task_description', sa.Text),
        sa.Column('num_posts', sa.Integer, server_default='0'),
        sa.Column('num_reels', sa.Integer, server_default='0'),
        sa.Column('num_videos', sa.Integer, server_default='0'),
        sa.Column('due_date', sa.DateTime),
    )
    op.create_index('ix_campaign_deliverable_templates_campaign_id', 'campaign_deliverable_templates', ['campaign_id'])

    op.create_table('campaign_metrics',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('revenue', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('overall_progress', sa.Integer, server_default='0'),
        sa.Column('engagement_rate', sa.Float, server_default='0'),
        sa.Column('reach', sa.Integer, server_default='0'),
        sa.Column('clicks', sa.Integer, server_default='0'),
        sa.Column('conversions', sa.Integer, server_default='0'),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    # 3. Collaborations
    op.create_table('collaborations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('influencer_id', sa.String(36), sa.ForeignKey('influencer_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', COLLABORATION_STATUS, nullable=False, server_default='request'),
        sa.Column('progress', sa.Integer, nullable=False, server_default='0'),
        sa.Column('revenue', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('commission_earned', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('engagement_rate', sa.Float, server_default='0'),
        sa.Column('reach', sa.Integer, server_default='0'),
        sa.Column('clicks', sa.Integer, server_default='0'),
        sa.Column('conversions', sa.Integer, nullable=False, server_default='0'),
        sa.Column('timeliness_score', sa.Integer, server_default='100'),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        *_timestamps(),
        sa.CheckConstraint('progress >= 0 AND progress <= 100', name='ck_collaboration_progress'),
    )
    op.create_index('ix_collaborations_campaign_id', 'collaborations', ['campaign_id'])
    op.create_index('ix_collaborations_influencer_id', 'collaborations', ['influencer_id'])
    op.create_index(
        'uq_collaboration_live_pair', 'collaborations', ['campaign_id', 'influencer_id'],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    # 4. Deliverables and content
    op.create_table('deliverables',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('collaboration_id', sa.String(36), sa.ForeignKey('collaborations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('platform', sa.String(50)),
        sa.Column('task_description', sa.Text),
        sa.Column('deliverable_type', sa.String(50)),
        sa.Column('num_posts', sa.Integer, server_default='0'),
        sa.Column('num_reels', sa.Integer, server_default='0'),
        sa.Column('num_videos', sa.Integer, server_default='0'),
        sa.Column('due_date', sa.DateTime),
        sa.Column('status', DELIVERABLE_STATUS, nullable=False, server_default='pending'),
        sa.Column('content_url', sa.String(1000)),
        sa.Column('submitted_at', sa.DateTime),
        sa.Column('reviewed_at', sa.DateTime),
        sa.Column('review_feedback', sa.Text),
        sa.Column('current_content_id', sa.String(36)),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        *_timestamps(),
        sa.UniqueConstraint('collaboration_id', 'position', name='uq_deliverable_position'),
    )
    op.create_index('ix_deliverables_collaboration_id', 'deliverables', ['collaboration_id'])

    # 5. Storefront
    op.create_table('products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('brand_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('original_price', sa.Numeric(12, 3)),
        sa.Column('campaign_price', sa.Numeric(12, 3), nullable=False),
        sa.Column('target_quantity', sa.Integer),
        sa.Column('sold_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('stock_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('delivery_days', sa.Integer),
        sa.Column('status', PRODUCT_STATUS, nullable=False, server_default='active'),
        *_timestamps(),
        sa.CheckConstraint('sold_quantity >= 0', name='ck_product_sold_non_negative'),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_product_stock_non_negative'),
        sa.CheckConstraint(
            'target_quantity IS NULL OR sold_quantity <= target_quantity',
            name='ck_product_sold_within_target'
        ),
    )
    op.create_index('ix_products_campaign_id', 'products', ['campaign_id'])
    op.create_index('ix_products_brand_id', 'products', ['brand_id'])

    op.create_table('campaign_content',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('influencer_id', sa.String(36), sa.ForeignKey('influencer_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id', ondelete='SET NULL')),
        sa.Column('deliverable_id', sa.String(36), sa.ForeignKey('deliverables.id', ondelete='SET NULL')),
        sa.Column('content_type', sa.String(50), nullable=False),
        sa.Column('platforms', sa.JSON),
        sa.Column('caption', sa.Text),
        sa.Column('description', sa.Text),
        sa.Column('media', sa.JSON),
        sa.Column('status', CONTENT_STATUS, nullable=False, server_default='submitted'),
        sa.Column('review_notes', sa.Text),
        sa.Column('brand_feedback', sa.Text),
        sa.Column('reviewed_at', sa.DateTime),
        sa.Column('external_post_url', sa.String(1000)),
        sa.Column('published_at', sa.DateTime),
        sa.Column('views', sa.Integer, nullable=False, server_default='0'),
        sa.Column('clicks', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_campaign_content_campaign_id', 'campaign_content', ['campaign_id'])
    op.create_index('ix_campaign_content_influencer_id', 'campaign_content', ['influencer_id'])
    op.create_index('ix_campaign_content_deliverable_id', 'campaign_content', ['deliverable_id'])

    op.create_table('customers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50)),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('total_purchases', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('last_purchase_date', sa.DateTime),
        *_timestamps(),
    )
    op.create_index('ix_customers_email', 'customers', ['email'], unique=True)

    op.create_table('orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('customer_id', sa.String(36), sa.ForeignKey('customers.id', ondelete='SET NULL')),
        sa.Column('customer_user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(50)),
        sa.Column('shipping_address', sa.JSON),
        sa.Column('subtotal', sa.Numeric(14, 3), nullable=False),
        sa.Column('shipping_cost', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(14, 3), nullable=False),
        sa.Column('status', ORDER_STATUS, nullable=False, server_default='pending'),
        sa.Column('status_history', sa.JSON, nullable=False),
        sa.Column('payment_reference', sa.String(100)),
        sa.Column('influencer_id', sa.String(36), sa.ForeignKey('influencer_profiles.id', ondelete='SET NULL')),
        sa.Column('referral_code', sa.String(32)),
        sa.Column('commission_amount', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('attribution_status', ATTRIBUTION_STATUS),
        sa.Column('estimated_delivery_date', sa.DateTime),
        *_timestamps(),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_influencer_id', 'orders', ['influencer_id'])

    op.create_table('order_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id'), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price_at_purchase', sa.Numeric(12, 3), nullable=False),
        sa.Column('subtotal', sa.Numeric(14, 3), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('commission_amount', sa.Numeric(14, 3), nullable=False, server_default='0'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])


def downgrade():
    for table in (
        'order_items', 'orders', 'customers', 'campaign_content', 'products',
        'deliverables', 'collaborations', 'campaign_metrics',
        'campaign_deliverable_templates', 'campaigns',
        'notifications', 'influencer_profiles', 'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        ATTRIBUTION_STATUS, ORDER_STATUS, PRODUCT_STATUS, CONTENT_STATUS,
        DELIVERABLE_STATUS, COLLABORATION_STATUS, CAMPAIGN_STATUS, USER_TYPE,
    ):
        enum_type.drop(bind, checkfirst=True)
