"""create chat core tables

Revision ID: 3f9a1c2e7b10
Revises: None
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f9a1c2e7b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255)),
        sa.Column('display_name', sa.String(200)),
        sa.Column('role', sa.String(20), nullable=False, server_default='standard_user'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('failed_login_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('locked_until', sa.DateTime()),
        sa.Column('last_login', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )

    op.create_table(
        'tenant_memberships',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('user_id', 'tenant_id', name='uq_membership_user_tenant'),
    )
    op.create_index('idx_membership_tenant', 'tenant_memberships', ['tenant_id'])

    op.create_table(
        'auth_sessions',
        sa.Column('token', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('active_tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='SET NULL')),
        sa.Column('role_snapshot', sa.String(20), nullable=False),
        sa.Column('tenant_snapshot', sa.JSON()),
        sa.Column('ip_address', sa.String(45)),
        sa.Column('user_agent', sa.String(255)),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('last_activity', sa.DateTime(), nullable=False),
        sa.Column('revoked_at', sa.DateTime()),
    )
    op.create_index('idx_auth_sessions_user', 'auth_sessions', ['user_id'])

    op.create_table(
        'channels',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100)),
        sa.Column('description', sa.String(500)),
        sa.Column('type', sa.String(20), nullable=False, server_default='public'),
        sa.Column('created_by', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_read_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_index('idx_channels_tenant_name', 'channels', ['tenant_id', 'name'])

    op.create_table(
        'channel_members',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('channel_id', sa.Integer(), sa.ForeignKey('channels.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='member'),
        sa.Column('notification_preference', sa.String(20), nullable=False, server_default='all'),
        sa.Column('muted_until', sa.DateTime()),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('channel_id', 'user_id', name='uq_channel_member'),
    )
    op.create_index('idx_channel_members_user', 'channel_members', ['user_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('channel_id', sa.Integer(), sa.ForeignKey('channels.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('message_type', sa.String(20), nullable=False, server_default='text'),
        sa.Column('parent_message_id', sa.Integer(), sa.ForeignKey('messages.id')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('is_edited', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('edited_at', sa.DateTime()),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime()),
    )
    op.create_index('idx_messages_channel_id', 'messages', ['channel_id', 'id'])
    op.create_index('idx_messages_tenant_id', 'messages', ['tenant_id', 'id'])
    op.create_index('idx_messages_parent', 'messages', ['parent_message_id'])

    op.create_table(
        'read_states',
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('channel_id', sa.Integer(), sa.ForeignKey('channels.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('last_read_message_id', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unread_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unread_mentions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE')),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(64)),
        sa.Column('changes', sa.JSON()),
        sa.Column('event_metadata', sa.JSON()),
        sa.Column('ip_address', sa.String(45)),
        sa.Column('user_agent', sa.String(255)),
        sa.Column('endpoint', sa.String(255)),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_audit_logs_tenant_timestamp', 'audit_logs', ['tenant_id', 'timestamp'])
    op.create_index('idx_audit_logs_user_timestamp', 'audit_logs', ['user_id', 'timestamp'])


def downgrade():
    op.drop_index('idx_audit_logs_user_timestamp', table_name='audit_logs')
    op.drop_index('idx_audit_logs_tenant_timestamp', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_table('read_states')
    op.drop_index('idx_messages_parent', table_name='messages')
    op.drop_index('idx_messages_tenant_id', table_name='messages')
    op.drop_index('idx_messages_channel_id', table_name='messages')
    op.drop_table('messages')
    op.drop_index('idx_channel_members_user', table_name='channel_members')
    op.drop_table('channel_members')
    op.drop_index('idx_channels_tenant_name', table_name='channels')
    op.drop_table('channels')
    op.drop_index('idx_auth_sessions_user', table_name='auth_sessions')
    op.drop_table('auth_sessions')
    op.drop_index('idx_membership_tenant', table_name='tenant_memberships')
    op.drop_table('tenant_memberships')
    op.drop_table('users')
    op.drop_table('tenants')
