"""add reactions and presence

Revision ID: 7b2d4e91c0a3
Revises: 3f9a1c2e7b10
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '7b2d4e91c0a3'
down_revision = '3f9a1c2e7b10'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'message_reactions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('message_id', sa.Integer(), sa.ForeignKey('messages.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('emoji', sa.String(32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('message_id', 'user_id', 'emoji', name='uq_message_reaction'),
    )
    op.create_index('idx_message_reactions_message', 'message_reactions', ['message_id'])

    op.create_table(
        'user_presence',
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='online'),
        sa.Column('status_message', sa.String(200)),
        sa.Column('current_channel_id', sa.Integer(), sa.ForeignKey('channels.id', ondelete='SET NULL')),
        sa.Column('last_activity', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'typing_indicators',
        sa.Column('channel_id', sa.Integer(), sa.ForeignKey('channels.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_typing_indicators_expiry', 'typing_indicators', ['expires_at'])


def downgrade():
    op.drop_index('idx_typing_indicators_expiry', table_name='typing_indicators')
    op.drop_table('typing_indicators')
    op.drop_table('user_presence')
    op.drop_index('idx_message_reactions_message', table_name='message_reactions')
    op.drop_table('message_reactions')
