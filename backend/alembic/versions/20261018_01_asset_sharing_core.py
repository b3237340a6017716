"""asset sharing core tables"""

from alembic import op
import sqlalchemy as sa
from typing import Sequence, Union

revision: str = '20261018_01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=False, server_default=''),
        sa.Column('bio', sa.Text(), nullable=False, server_default=''),
        sa.Column('avatar_url', sa.String(), nullable=False),
        sa.Column('sponsor_urls', sa.JSON(), nullable=True),
        sa.Column('roles', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'assets',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('legacy_id', sa.Integer(), nullable=True, unique=True),
        sa.Column('file_format', sa.String(), nullable=False),
        sa.Column('uploader_id', sa.String(32), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('collaborators', sa.JSON(), nullable=False),
        sa.Column('name', sa.String(64), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('license', sa.String(), nullable=False),
        sa.Column('license_url', sa.String(), nullable=True),
        sa.Column('source_url', sa.String(), nullable=True),
        sa.Column('file_hash', sa.String(64), nullable=False, unique=True),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('icon_names', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='private'),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_assets_uploader_id', 'assets', ['uploader_id'])
    op.create_index('ix_assets_status', 'assets', ['status'])

    op.create_table(
        'asset_status_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('asset_id', sa.Integer(), sa.ForeignKey('assets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('actor_id', sa.String(32), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('asset_id', 'sequence', name='uq_asset_status_sequence'),
    )
    op.create_index('ix_asset_status_events_asset_id', 'asset_status_events', ['asset_id'])

    op.create_table(
        'asset_links',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('asset_id', sa.Integer(), sa.ForeignKey('assets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('linked_asset_id', sa.Integer(), sa.ForeignKey('assets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('link_type', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('asset_id', 'linked_asset_id', name='uq_asset_link_pair'),
        sa.CheckConstraint('asset_id <> linked_asset_id', name='ck_asset_link_not_self'),
    )
    op.create_index('ix_asset_links_asset_id', 'asset_links', ['asset_id'])
    op.create_index('ix_asset_links_linked_asset_id', 'asset_links', ['linked_asset_id'])

    op.create_table(
        'asset_requests',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('asset_id', sa.Integer(), sa.ForeignKey('assets.id'), nullable=False),
        sa.Column('requester_id', sa.String(32), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('responder_id', sa.String(32), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('request_type', sa.String(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('accepted', sa.Boolean(), nullable=True),
        sa.Column('resolved_by', sa.String(32), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('messages', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_asset_requests_asset_id', 'asset_requests', ['asset_id'])
    op.create_index('ix_asset_requests_requester_id', 'asset_requests', ['requester_id'])
    op.create_index('ix_asset_requests_responder_id', 'asset_requests', ['responder_id'])
    op.create_index('ix_asset_requests_request_type', 'asset_requests', ['request_type'])

    op.create_table(
        'alerts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(32), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('asset_id', sa.Integer(), sa.ForeignKey('assets.id'), nullable=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('asset_requests.id'), nullable=True),
        sa.Column('header', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('delivered', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('asset_id IS NULL OR request_id IS NULL', name='ck_alert_single_association'),
    )
    op.create_index('ix_alerts_user_id', 'alerts', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_alerts_user_id', table_name='alerts')
    op.drop_table('alerts')
    for index in (
        'ix_asset_requests_request_type',
        'ix_asset_requests_responder_id',
        'ix_asset_requests_requester_id',
        'ix_asset_requests_asset_id',
    ):
        op.drop_index(index, table_name='asset_requests')
    op.drop_table('asset_requests')
    op.drop_index('ix_asset_links_linked_asset_id', table_name='asset_links')
    op.drop_index('ix_asset_links_asset_id', table_name='asset_links')
    op.drop_table('asset_links')
    op.drop_index('ix_asset_status_events_asset_id', table_name='asset_status_events')
    op.drop_table('asset_status_events')
    op.drop_index('ix_assets_status', table_name='assets')
    op.drop_index('ix_assets_uploader_id', table_name='assets')
    op.drop_table('assets')
    op.drop_table('users')
