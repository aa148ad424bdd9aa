"""session notes

Revision ID: 5d2b8e4c1f63
Revises: 0a1c5e7f9b21
Create Date: 2026-10-19 12:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5d2b8e4c1f63"
down_revision = "0a1c5e7f9b21"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "session_notes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "campaign_id",
            sa.String(length=36),
            sa.ForeignKey("campaigns.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("linked_content_ids", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_session_notes_user_id", "session_notes", ["user_id"])
    op.create_index("ix_session_notes_campaign_id", "session_notes", ["campaign_id"])
    op.create_index(
        "ix_session_notes_user_session_date", "session_notes", ["user_id", "session_date"]
    )


def downgrade() -> None:
    op.drop_index("ix_session_notes_user_session_date", table_name="session_notes")
    op.drop_index("ix_session_notes_campaign_id", table_name="session_notes")
    op.drop_index("ix_session_notes_user_id", table_name="session_notes")
    op.drop_table("session_notes")
