"""content, versions, links and campaigns

Revision ID: 0a1c5e7f9b21
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0a1c5e7f9b21"
down_revision = None
branch_labels = None
depends_on = None

CONTENT_TYPES = ("character", "environment", "mission")
LINK_TYPES = ("related", "part_of", "uses", "located_in", "involves")


def upgrade() -> None:
    op.create_table(
        "generated_content",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.Enum(*CONTENT_TYPES, name="contenttype"), nullable=False),
        sa.Column("scenario_input", sa.Text(), nullable=False),
        sa.Column("content_data", sa.JSON(), nullable=False),
        sa.Column("is_favorite", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_generated_content_user_id", "generated_content", ["user_id"])
    op.create_index("ix_generated_content_type", "generated_content", ["type"])
    op.create_index(
        "ix_generated_content_user_created", "generated_content", ["user_id", "created_at"]
    )
    op.create_index(
        "ix_generated_content_user_favorite", "generated_content", ["user_id", "is_favorite"]
    )

    op.create_table(
        "content_versions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "content_id",
            sa.String(length=36),
            sa.ForeignKey("generated_content.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("content_data", sa.JSON(), nullable=False),
        sa.Column("change_summary", sa.Text(), nullable=True),
        sa.Column("changed_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "content_id", "version_number", name="uq_content_versions_number"
        ),
    )
    op.create_index("ix_content_versions_content_id", "content_versions", ["content_id"])
    op.create_index("ix_content_versions_user_id", "content_versions", ["user_id"])

    op.create_table(
        "content_links",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "source_content_id",
            sa.String(length=36),
            sa.ForeignKey("generated_content.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_content_id",
            sa.String(length=36),
            sa.ForeignKey("generated_content.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("link_type", sa.Enum(*LINK_TYPES, name="linktype"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "source_content_id", "target_content_id", name="uq_content_links_pair"
        ),
        sa.CheckConstraint(
            "source_content_id <> target_content_id", name="ck_content_links_no_self"
        ),
    )
    op.create_index("ix_content_links_user_id", "content_links", ["user_id"])
    op.create_index("ix_content_links_source_content_id", "content_links", ["source_content_id"])
    op.create_index("ix_content_links_target_content_id", "content_links", ["target_content_id"])

    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("settings", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_campaigns_user_id", "campaigns", ["user_id"])

    op.create_table(
        "campaign_content",
        sa.Column(
            "campaign_id",
            sa.String(length=36),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "content_id",
            sa.String(length=36),
            sa.ForeignKey("generated_content.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_campaign_content_content_id", "campaign_content", ["content_id"])
    op.create_index(
        "ix_campaign_content_campaign_sequence", "campaign_content", ["campaign_id", "sequence"]
    )


def downgrade() -> None:
    op.drop_index("ix_campaign_content_campaign_sequence", table_name="campaign_content")
    op.drop_index("ix_campaign_content_content_id", table_name="campaign_content")
    op.drop_table("campaign_content")
    op.drop_index("ix_campaigns_user_id", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_index("ix_content_links_target_content_id", table_name="content_links")
    op.drop_index("ix_content_links_source_content_id", table_name="content_links")
    op.drop_index("ix_content_links_user_id", table_name="content_links")
    op.drop_table("content_links")
    op.drop_index("ix_content_versions_user_id", table_name="content_versions")
    op.drop_index("ix_content_versions_content_id", table_name="content_versions")
    op.drop_table("content_versions")
    op.drop_index("ix_generated_content_user_favorite", table_name="generated_content")
    op.drop_index("ix_generated_content_user_created", table_name="generated_content")
    op.drop_index("ix_generated_content_type", table_name="generated_content")
    op.drop_index("ix_generated_content_user_id", table_name="generated_content")
    op.drop_table("generated_content")
    sa.Enum(name="linktype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="contenttype").drop(op.get_bind(), checkfirst=True)
