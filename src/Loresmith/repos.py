# repos.py

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from Loresmith import models
from Loresmith.errors import Conflict, NotFound

OwnedModel = TypeVar(
    "OwnedModel", models.GeneratedContent, models.Campaign, models.SessionNote
)


async def _flush_retry(s: AsyncSession, attempts: int = 5, delay: float = 0.2) -> None:
    """Retry session.flush() on transient SQLite 'database is locked' errors.

    Exponential backoff: delay * 2^i between attempts.
    """
    for i in range(attempts):
        try:
            await s.flush()
            return
        except OperationalError as e:  # pragma: no cover - timing dependent
            msg = str(e).lower()
            if "database is locked" in msg or "database is busy" in msg:
                if i == attempts - 1:
                    raise
                await asyncio.sleep(delay * (2**i))
                continue
            raise


async def _add_unique(s: AsyncSession, obj: Any, *, conflict_message: str) -> None:
    """Insert ``obj`` inside a SAVEPOINT, mapping a uniqueness violation to Conflict.

    The savepoint keeps the surrounding transaction usable after the failure.
    """
    try:
        async with s.begin_nested():
            s.add(obj)
            await _flush_retry(s)
    except IntegrityError as err:
        raise Conflict(conflict_message) from err


async def healthcheck(s: AsyncSession) -> None:
    """Lightweight DB check to confirm connectivity and basic query works."""
    await s.execute(select(models.GeneratedContent.id).limit(1))


# -----------------------------
# Ownership
# -----------------------------


async def get_owned(
    s: AsyncSession, model: type[OwnedModel], *, entity_id: str, user_id: str
) -> OwnedModel | None:
    q = await s.execute(select(model).where(model.id == entity_id, model.user_id == user_id))
    return q.scalar_one_or_none()


async def require_owned(
    s: AsyncSession,
    model: type[OwnedModel],
    *,
    entity_id: str,
    user_id: str,
    message: str = "Not found",
) -> OwnedModel:
    """Fetch an entity owned by ``user_id`` or raise NotFound.

    Absent and foreign-owned rows are indistinguishable to the caller.
    """
    obj = await get_owned(s, model, entity_id=entity_id, user_id=user_id)
    if obj is None:
        raise NotFound(message)
    return obj


async def require_owned_content(
    s: AsyncSession, *, content_id: str, user_id: str
) -> models.GeneratedContent:
    return await require_owned(
        s,
        models.GeneratedContent,
        entity_id=content_id,
        user_id=user_id,
        message="Content not found",
    )


async def require_owned_campaign(
    s: AsyncSession, *, campaign_id: str, user_id: str
) -> models.Campaign:
    return await require_owned(
        s, models.Campaign, entity_id=campaign_id, user_id=user_id, message="Campaign not found"
    )


# -----------------------------
# Generated content
# -----------------------------


async def create_content(
    s: AsyncSession,
    *,
    user_id: str,
    type: models.ContentType,
    scenario_input: str,
    content_data: dict[str, Any],
    tags: list[str] | None = None,
    notes: str | None = None,
    is_favorite: bool | None = None,
) -> models.GeneratedContent:
    obj = models.GeneratedContent(
        user_id=user_id,
        type=type,
        scenario_input=scenario_input,
        content_data=content_data,
        tags=list(tags or []),
        notes=notes or "",
        is_favorite=bool(is_favorite),
    )
    s.add(obj)
    await _flush_retry(s)
    return obj


async def list_content(
    s: AsyncSession,
    *,
    user_id: str,
    type: models.ContentType | None = None,
    favorite_only: bool = False,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[models.GeneratedContent], int]:
    filters: list[Any] = [models.GeneratedContent.user_id == user_id]
    if type is not None:
        filters.append(models.GeneratedContent.type == type)
    if favorite_only:
        filters.append(models.GeneratedContent.is_favorite.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                models.GeneratedContent.scenario_input.ilike(pattern),
                models.GeneratedContent.notes.ilike(pattern),
            )
        )
    total = await s.scalar(select(func.count()).select_from(models.GeneratedContent).where(*filters))
    q = await s.execute(
        select(models.GeneratedContent)
        .where(*filters)
        .order_by(models.GeneratedContent.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(q.scalars().all()), int(total or 0)


async def get_content_by_ids(
    s: AsyncSession, *, user_id: str, content_ids: Iterable[str]
) -> dict[str, models.GeneratedContent]:
    """Batch fetch owned records keyed by id; missing ids are simply absent."""
    ids = set(content_ids)
    if not ids:
        return {}
    q = await s.execute(
        select(models.GeneratedContent).where(
            models.GeneratedContent.id.in_(ids),
            models.GeneratedContent.user_id == user_id,
        )
    )
    return {obj.id: obj for obj in q.scalars().all()}


async def update_content_fields(
    s: AsyncSession, *, content_id: str, user_id: str, values: dict[str, Any]
) -> int:
    """Conditional single-row update filtered by id and owner; returns rows affected."""
    result = await s.execute(
        update(models.GeneratedContent)
        .where(
            models.GeneratedContent.id == content_id,
            models.GeneratedContent.user_id == user_id,
        )
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    return int(result.rowcount or 0)


async def delete_content(s: AsyncSession, *, content_id: str, user_id: str) -> int:
    result = await s.execute(
        delete(models.GeneratedContent).where(
            models.GeneratedContent.id == content_id,
            models.GeneratedContent.user_id == user_id,
        )
    )
    return int(result.rowcount or 0)


# -----------------------------
# Content versions
# -----------------------------


async def get_max_version_number(s: AsyncSession, *, content_id: str) -> int | None:
    q = await s.execute(
        select(func.max(models.ContentVersion.version_number)).where(
            models.ContentVersion.content_id == content_id
        )
    )
    value = q.scalar_one_or_none()
    return int(value) if value is not None else None


async def next_version_number(s: AsyncSession, *, content_id: str) -> int:
    last = await get_max_version_number(s, content_id=content_id)
    return last + 1 if last is not None else 1


async def insert_version(
    s: AsyncSession,
    *,
    content_id: str,
    user_id: str,
    version_number: int,
    content_data: dict[str, Any],
    change_summary: str | None,
    changed_by: str | None,
) -> models.ContentVersion:
    """Insert a snapshot; a duplicate version number raises IntegrityError.

    Callers run this with the number read inside one SAVEPOINT so a failure
    leaves the outer transaction usable.
    """
    obj = models.ContentVersion(
        content_id=content_id,
        user_id=user_id,
        version_number=version_number,
        content_data=content_data,
        change_summary=change_summary,
        changed_by=changed_by,
    )
    s.add(obj)
    await _flush_retry(s)
    return obj


async def list_versions(
    s: AsyncSession, *, content_id: str, user_id: str
) -> list[models.ContentVersion]:
    q = await s.execute(
        select(models.ContentVersion)
        .where(
            models.ContentVersion.content_id == content_id,
            models.ContentVersion.user_id == user_id,
        )
        .order_by(models.ContentVersion.version_number.desc())
    )
    return list(q.scalars().all())


async def get_versions_by_ids(
    s: AsyncSession, *, content_id: str, user_id: str, version_ids: Iterable[str]
) -> dict[str, models.ContentVersion]:
    ids = set(version_ids)
    if not ids:
        return {}
    q = await s.execute(
        select(models.ContentVersion).where(
            models.ContentVersion.id.in_(ids),
            models.ContentVersion.content_id == content_id,
            models.ContentVersion.user_id == user_id,
        )
    )
    return {v.id: v for v in q.scalars().all()}


# -----------------------------
# Content links
# -----------------------------


async def get_link_for_pair(
    s: AsyncSession, *, source_id: str, target_id: str
) -> models.ContentLink | None:
    q = await s.execute(
        select(models.ContentLink).where(
            models.ContentLink.source_content_id == source_id,
            models.ContentLink.target_content_id == target_id,
        )
    )
    return q.scalar_one_or_none()


async def insert_link(
    s: AsyncSession,
    *,
    user_id: str,
    source_id: str,
    target_id: str,
    link_type: models.LinkType,
) -> models.ContentLink:
    obj = models.ContentLink(
        user_id=user_id,
        source_content_id=source_id,
        target_content_id=target_id,
        link_type=link_type,
    )
    await _add_unique(s, obj, conflict_message="Link already exists")
    return obj


async def list_links_from(
    s: AsyncSession, *, user_id: str, content_id: str
) -> list[models.ContentLink]:
    q = await s.execute(
        select(models.ContentLink)
        .where(
            models.ContentLink.source_content_id == content_id,
            models.ContentLink.user_id == user_id,
        )
        .order_by(models.ContentLink.created_at)
    )
    return list(q.scalars().all())


async def list_links_to(
    s: AsyncSession, *, user_id: str, content_id: str
) -> list[models.ContentLink]:
    q = await s.execute(
        select(models.ContentLink)
        .where(
            models.ContentLink.target_content_id == content_id,
            models.ContentLink.user_id == user_id,
        )
        .order_by(models.ContentLink.created_at)
    )
    return list(q.scalars().all())


async def delete_link(s: AsyncSession, *, user_id: str, link_id: str) -> int:
    result = await s.execute(
        delete(models.ContentLink).where(
            models.ContentLink.id == link_id,
            models.ContentLink.user_id == user_id,
        )
    )
    return int(result.rowcount or 0)


# -----------------------------
# Campaigns
# -----------------------------


async def create_campaign(
    s: AsyncSession,
    *,
    user_id: str,
    name: str,
    description: str = "",
    settings: dict[str, Any] | None = None,
) -> models.Campaign:
    obj = models.Campaign(
        user_id=user_id, name=name, description=description, settings=dict(settings or {})
    )
    s.add(obj)
    await _flush_retry(s)
    return obj


async def list_campaigns(s: AsyncSession, *, user_id: str) -> list[models.Campaign]:
    q = await s.execute(
        select(models.Campaign)
        .where(models.Campaign.user_id == user_id)
        .order_by(models.Campaign.updated_at.desc())
    )
    return list(q.scalars().all())


async def update_campaign_fields(
    s: AsyncSession, *, campaign_id: str, user_id: str, values: dict[str, Any]
) -> int:
    result = await s.execute(
        update(models.Campaign)
        .where(models.Campaign.id == campaign_id, models.Campaign.user_id == user_id)
        .values(updated_at=datetime.now(timezone.utc), **values)
        .execution_options(synchronize_session="fetch")
    )
    return int(result.rowcount or 0)


async def delete_campaign(s: AsyncSession, *, campaign_id: str, user_id: str) -> int:
    result = await s.execute(
        delete(models.Campaign).where(
            models.Campaign.id == campaign_id, models.Campaign.user_id == user_id
        )
    )
    return int(result.rowcount or 0)


# -----------------------------
# Campaign content ordering
# -----------------------------


async def get_max_sequence(s: AsyncSession, *, campaign_id: str) -> int | None:
    q = await s.execute(
        select(func.max(models.CampaignContent.sequence)).where(
            models.CampaignContent.campaign_id == campaign_id
        )
    )
    value = q.scalar_one_or_none()
    return int(value) if value is not None else None


async def insert_campaign_content(
    s: AsyncSession, *, campaign_id: str, content_id: str, sequence: int, notes: str
) -> models.CampaignContent:
    obj = models.CampaignContent(
        campaign_id=campaign_id, content_id=content_id, sequence=sequence, notes=notes
    )
    await _add_unique(s, obj, conflict_message="Content already added to campaign")
    return obj


async def get_campaign_entry(
    s: AsyncSession, *, campaign_id: str, content_id: str
) -> models.CampaignContent | None:
    q = await s.execute(
        select(models.CampaignContent).where(
            models.CampaignContent.campaign_id == campaign_id,
            models.CampaignContent.content_id == content_id,
        )
    )
    return q.scalar_one_or_none()


async def update_campaign_entry(
    s: AsyncSession, *, campaign_id: str, content_id: str, values: dict[str, Any]
) -> int:
    result = await s.execute(
        update(models.CampaignContent)
        .where(
            models.CampaignContent.campaign_id == campaign_id,
            models.CampaignContent.content_id == content_id,
        )
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    return int(result.rowcount or 0)


async def delete_campaign_entry(s: AsyncSession, *, campaign_id: str, content_id: str) -> int:
    result = await s.execute(
        delete(models.CampaignContent).where(
            models.CampaignContent.campaign_id == campaign_id,
            models.CampaignContent.content_id == content_id,
        )
    )
    return int(result.rowcount or 0)


async def list_campaign_entries(
    s: AsyncSession, *, campaign_id: str, user_id: str
) -> list[tuple[models.CampaignContent, models.GeneratedContent | None]]:
    """Entries ordered by sequence, each paired with its record or None."""
    q = await s.execute(
        select(models.CampaignContent, models.GeneratedContent)
        .outerjoin(
            models.GeneratedContent,
            (models.GeneratedContent.id == models.CampaignContent.content_id)
            & (models.GeneratedContent.user_id == user_id),
        )
        .where(models.CampaignContent.campaign_id == campaign_id)
        .order_by(models.CampaignContent.sequence, models.CampaignContent.created_at)
    )
    return [(entry, content) for entry, content in q.all()]


# -----------------------------
# Session notes
# -----------------------------


async def require_owned_session_note(
    s: AsyncSession, *, note_id: str, user_id: str
) -> models.SessionNote:
    return await require_owned(
        s, models.SessionNote, entity_id=note_id, user_id=user_id, message="Session note not found"
    )


async def create_session_note(
    s: AsyncSession, *, user_id: str, values: dict[str, Any]
) -> models.SessionNote:
    obj = models.SessionNote(user_id=user_id, **values)
    s.add(obj)
    await _flush_retry(s)
    return obj


async def list_session_notes(
    s: AsyncSession, *, user_id: str, campaign_id: str | None = None
) -> list[models.SessionNote]:
    stmt = select(models.SessionNote).where(models.SessionNote.user_id == user_id)
    if campaign_id is not None:
        stmt = stmt.where(models.SessionNote.campaign_id == campaign_id)
    q = await s.execute(
        stmt.order_by(models.SessionNote.session_date.desc(), models.SessionNote.updated_at.desc())
    )
    return list(q.scalars().all())


async def update_session_note_fields(
    s: AsyncSession, *, note_id: str, user_id: str, values: dict[str, Any]
) -> int:
    result = await s.execute(
        update(models.SessionNote)
        .where(models.SessionNote.id == note_id, models.SessionNote.user_id == user_id)
        .values(updated_at=datetime.now(timezone.utc), **values)
        .execution_options(synchronize_session="fetch")
    )
    return int(result.rowcount or 0)


async def delete_session_note(s: AsyncSession, *, note_id: str, user_id: str) -> int:
    result = await s.execute(
        delete(models.SessionNote).where(
            models.SessionNote.id == note_id, models.SessionNote.user_id == user_id
        )
    )
    return int(result.rowcount or 0)
