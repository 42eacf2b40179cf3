"""add_activity_log_table

Revision ID: d07e93a1f6c2
Revises: 8b52f0c3de41
Create Date: 2026-09-14 11:02:47.330719

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "d07e93a1f6c2"
down_revision: str | Sequence[str] | None = "8b52f0c3de41"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create activity_log table with indexes."""
    op.create_table(
        "activity_log",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("actor_id", sa.UUID(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.UUID(), nullable=False),
        sa.Column("summary", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("changes", postgresql.JSONB(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    # Index for workspace activity feed (newest first)
    op.create_index(
        "ix_activity_log_workspace_created",
        "activity_log",
        ["workspace_id", sa.text("created_at DESC")],
        unique=False,
    )
    # Index for entity-specific history
    op.create_index(
        "ix_activity_log_entity",
        "activity_log",
        ["entity_type", "entity_id", sa.text("created_at DESC")],
        unique=False,
    )


def downgrade() -> None:
    """Drop activity_log table and indexes."""
    op.drop_index("ix_activity_log_entity", table_name="activity_log")
    op.drop_index("ix_activity_log_workspace_created", table_name="activity_log")
    op.drop_table("activity_log")
