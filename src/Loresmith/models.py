# models.py

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from Loresmith.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _today() -> date:
    return _now().date()


class ContentType(str, enum.Enum):
    character = "character"
    environment = "environment"
    mission = "mission"


class LinkType(str, enum.Enum):
    related = "related"
    part_of = "part_of"
    uses = "uses"
    located_in = "located_in"
    involves = "involves"


class GeneratedContent(Base):
    __tablename__ = "generated_content"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[ContentType] = mapped_column(SAEnum(ContentType, name="contenttype"), index=True)
    scenario_input: Mapped[str] = mapped_column(Text)
    # Open structured payload; its shape depends on `type`
    content_data: Mapped[dict] = mapped_column(JSON)
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        Index("ix_generated_content_user_created", "user_id", "created_at"),
        Index("ix_generated_content_user_favorite", "user_id", "is_favorite"),
    )


class ContentVersion(Base):
    __tablename__ = "content_versions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    content_id: Mapped[str] = mapped_column(
        ForeignKey("generated_content.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    version_number: Mapped[int] = mapped_column(Integer)
    content_data: Mapped[dict] = mapped_column(JSON)
    change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        # Turns a racing read-max-then-insert into a retryable IntegrityError
        UniqueConstraint("content_id", "version_number", name="uq_content_versions_number"),
    )


class ContentLink(Base):
    __tablename__ = "content_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    source_content_id: Mapped[str] = mapped_column(
        ForeignKey("generated_content.id", ondelete="CASCADE"), index=True
    )
    target_content_id: Mapped[str] = mapped_column(
        ForeignKey("generated_content.id", ondelete="CASCADE"), index=True
    )
    link_type: Mapped[LinkType] = mapped_column(SAEnum(LinkType, name="linktype"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        # One edge per ordered pair, whatever its type
        UniqueConstraint("source_content_id", "target_content_id", name="uq_content_links_pair"),
        CheckConstraint("source_content_id <> target_content_id", name="ck_content_links_no_self"),
    )


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    settings: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now
    )


class CampaignContent(Base):
    __tablename__ = "campaign_content"

    campaign_id: Mapped[str] = mapped_column(
        ForeignKey("campaigns.id", ondelete="CASCADE"), primary_key=True
    )
    content_id: Mapped[str] = mapped_column(
        ForeignKey("generated_content.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    # Ordering key; gaps and duplicates are tolerated, only relative order matters
    sequence: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        Index("ix_campaign_content_campaign_sequence", "campaign_id", "sequence"),
    )


class SessionNote(Base):
    __tablename__ = "session_notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    # Notes outlive their campaign
    campaign_id: Mapped[str | None] = mapped_column(
        ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(Text)
    content: Mapped[str] = mapped_column(Text, default="")
    session_date: Mapped[date] = mapped_column(Date, default=_today)
    linked_content_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now
    )

    __table_args__ = (
        Index("ix_session_notes_user_session_date", "user_id", "session_date"),
    )
