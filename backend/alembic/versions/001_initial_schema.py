"""initial killscale schema

Revision ID: 001
Revises:
Create Date: 2026-01-12

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'meta_connections',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('meta_user_id', sa.String(length=100), nullable=True),
        sa.Column('meta_user_name', sa.String(length=255), nullable=True),
        sa.Column('ad_accounts', sa.JSON(), nullable=True),
        sa.Column('selected_ad_account_id', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_meta_connections_user_id', 'meta_connections', ['user_id'], unique=True)

    op.create_table(
        'google_connections',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.String(length=50), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_google_connections_user_id', 'google_connections', ['user_id'], unique=True)

    op.create_table(
        'ad_data',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('ad_account_id', sa.String(length=50), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('date_start', sa.Date(), nullable=False),
        sa.Column('date_end', sa.Date(), nullable=True),
        sa.Column('campaign_id', sa.String(length=64), nullable=True),
        sa.Column('campaign_name', sa.String(length=512), nullable=True),
        sa.Column('campaign_status', sa.String(length=32), nullable=True),
        sa.Column('campaign_daily_budget', sa.Numeric(14, 2), nullable=True),
        sa.Column('campaign_lifetime_budget', sa.Numeric(14, 2), nullable=True),
        sa.Column('adset_id', sa.String(length=64), nullable=True),
        sa.Column('adset_name', sa.String(length=512), nullable=True),
        sa.Column('adset_status', sa.String(length=32), nullable=True),
        sa.Column('adset_daily_budget', sa.Numeric(14, 2), nullable=True),
        sa.Column('adset_lifetime_budget', sa.Numeric(14, 2), nullable=True),
        sa.Column('ad_id', sa.String(length=64), nullable=True),
        sa.Column('ad_name', sa.String(length=512), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=True),
        sa.Column('creative_id', sa.String(length=64), nullable=True),
        sa.Column('media_hash', sa.String(length=128), nullable=True),
        sa.Column('media_type', sa.String(length=16), nullable=True),
        sa.Column('video_id', sa.String(length=64), nullable=True),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('storage_url', sa.Text(), nullable=True),
        sa.Column('headline', sa.Text(), nullable=True),
        sa.Column('primary_text', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('spend', sa.Numeric(14, 2), nullable=True),
        sa.Column('revenue', sa.Numeric(14, 2), nullable=True),
        sa.Column('purchases', sa.Integer(), nullable=True),
        sa.Column('impressions', sa.Integer(), nullable=True),
        sa.Column('clicks', sa.Integer(), nullable=True),
        sa.Column('video_views', sa.Integer(), nullable=True),
        sa.Column('video_thruplay', sa.Integer(), nullable=True),
        sa.Column('video_p100', sa.Integer(), nullable=True),
        sa.Column('video_avg_time_watched', sa.Numeric(10, 2), nullable=True),
        sa.Column('video_plays', sa.Integer(), nullable=True),
        sa.Column('outbound_clicks', sa.Integer(), nullable=True),
        sa.Column('synced_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_ad_data_user_account', 'ad_data', ['user_id', 'ad_account_id'])
    op.create_index('ix_ad_data_media_hash', 'ad_data', ['media_hash'])
    op.create_index('ix_ad_data_campaign_id', 'ad_data', ['campaign_id'])
    op.create_index('ix_ad_data_adset_id', 'ad_data', ['adset_id'])
    op.create_index('ix_ad_data_ad_id', 'ad_data', ['ad_id'])

    op.create_table(
        'campaign_creations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('ad_account_id', sa.String(length=50), nullable=False),
        sa.Column('campaign_id', sa.String(length=64), nullable=False),
        sa.Column('campaign_name', sa.String(length=512), nullable=True),
        sa.Column('adset_id', sa.String(length=64), nullable=True),
        sa.Column('ad_ids', sa.JSON(), nullable=True),
        sa.Column('budget_type', sa.String(length=8), nullable=True),
        sa.Column('daily_budget', sa.Numeric(14, 2), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=True),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('source_campaign_id', sa.String(length=64), nullable=True),
        sa.Column('is_duplicate', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_campaign_creations_user_id', 'campaign_creations', ['user_id'])
    op.create_index('ix_campaign_creations_campaign_id', 'campaign_creations', ['campaign_id'])

    op.create_table(
        'budget_changes',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('ad_account_id', sa.String(length=50), nullable=True),
        sa.Column('entity_type', sa.String(length=16), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        sa.Column('old_budget', sa.Numeric(14, 2), nullable=False),
        sa.Column('new_budget', sa.Numeric(14, 2), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_budget_changes_user_id', 'budget_changes', ['user_id'])

    op.create_table(
        'media_library',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('ad_account_id', sa.String(length=50), nullable=False),
        sa.Column('media_hash', sa.String(length=128), nullable=False),
        sa.Column('media_type', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=512), nullable=True),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('video_thumbnail_url', sa.Text(), nullable=True),
        sa.Column('storage_url', sa.Text(), nullable=True),
        sa.Column('storage_path', sa.Text(), nullable=True),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('file_size_bytes', sa.BigInteger(), nullable=True),
        sa.Column('download_status', sa.String(length=32), nullable=True),
        sa.Column('synced_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'ad_account_id', 'media_hash', name='uq_media_library_user_account_hash'),
    )

    op.create_table(
        'starred_media',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('workspace_id', sa.String(length=64), nullable=True),
        sa.Column('ad_account_id', sa.String(length=50), nullable=False),
        sa.Column('media_hash', sa.String(length=128), nullable=False),
        sa.Column('media_type', sa.String(length=16), nullable=False),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('media_name', sa.String(length=512), nullable=True),
        sa.Column('starred_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'ad_account_id', 'media_hash', name='uq_starred_media_user_account_hash'),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('plan', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('stripe_customer_id', sa.String(length=100), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'], unique=True)

    op.create_table(
        'admin_granted_subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('plan', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('granted_by', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_granted_subscriptions_user_id', 'admin_granted_subscriptions', ['user_id'])


def downgrade():
    op.drop_index('ix_admin_granted_subscriptions_user_id', table_name='admin_granted_subscriptions')
    op.drop_table('admin_granted_subscriptions')
    op.drop_index('ix_subscriptions_user_id', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_table('starred_media')
    op.drop_table('media_library')
    op.drop_index('ix_budget_changes_user_id', table_name='budget_changes')
    op.drop_table('budget_changes')
    op.drop_index('ix_campaign_creations_campaign_id', table_name='campaign_creations')
    op.drop_index('ix_campaign_creations_user_id', table_name='campaign_creations')
    op.drop_table('campaign_creations')
    op.drop_index('ix_ad_data_ad_id', table_name='ad_data')
    op.drop_index('ix_ad_data_adset_id', table_name='ad_data')
    op.drop_index('ix_ad_data_campaign_id', table_name='ad_data')
    op.drop_index('ix_ad_data_media_hash', table_name='ad_data')
    op.drop_index('ix_ad_data_user_account', table_name='ad_data')
    op.drop_table('ad_data')
    op.drop_index('ix_google_connections_user_id', table_name='google_connections')
    op.drop_table('google_connections')
    op.drop_index('ix_meta_connections_user_id', table_name='meta_connections')
    op.drop_table('meta_connections')
