"""add_invitations_table

Revision ID: 8b52f0c3de41
Revises: 4c1d2e7a9b10
Create Date: 2026-09-14 10:40:02.915533

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '8b52f0c3de41'
down_revision: Union[str, Sequence[str], None] = '4c1d2e7a9b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create invitations table with engagement, gamification and referral columns."""
    # No FK to workspaces: invitation rows outlive their workspace
    op.create_table('invitations',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('workspace_id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='member'),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('invited_by', sa.UUID(), nullable=False),
        sa.Column('inviter_email', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_clicked_at', sa.DateTime(), nullable=True),
        sa.Column('reminders_sent', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('perks', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('achievements', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('streak_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_active_at', sa.DateTime(), nullable=True),
        sa.Column('invitation_level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('referral_code', sa.String(length=16), nullable=True),
        sa.Column('referred_by', sa.UUID(), nullable=True),
        sa.Column('referral_count', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint("role IN ('admin', 'member')", name='ck_invitations_role'),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'expired', 'revoked')",
            name='ck_invitations_status',
        ),
        sa.CheckConstraint('invitation_level BETWEEN 1 AND 5', name='ck_invitations_level'),
        sa.ForeignKeyConstraint(['referred_by'], ['invitations.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
        sa.UniqueConstraint('referral_code'),
    )
    op.create_index('ix_invitations_workspace_id', 'invitations', ['workspace_id'], unique=False)
    op.create_index('ix_invitations_email', 'invitations', ['email'], unique=False)
    op.create_index('ix_invitations_invited_by', 'invitations', ['invited_by'], unique=False)
    op.create_index('ix_invitations_referred_by', 'invitations', ['referred_by'], unique=False)
    # At most one pending invitation per (workspace, email)
    op.create_index(
        'uq_invitations_pending_workspace_email',
        'invitations',
        ['workspace_id', 'email'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    """Drop invitations table."""
    op.drop_index('uq_invitations_pending_workspace_email', table_name='invitations')
    op.drop_index('ix_invitations_referred_by', table_name='invitations')
    op.drop_index('ix_invitations_invited_by', table_name='invitations')
    op.drop_index('ix_invitations_email', table_name='invitations')
    op.drop_index('ix_invitations_workspace_id', table_name='invitations')
    op.drop_table('invitations')
