"""Session notes: a game master's log of played sessions.

A note may belong to one of the caller's campaigns and may point at any
number of the caller's generated records. Deleting the campaign keeps the
note and clears its campaign.
"""
from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from Loresmith import models, repos
from Loresmith.errors import InvalidArgument, NotFound
from Loresmith.metrics import inc_counter

log = structlog.get_logger()


def parse_session_date(value: Any) -> date:
    """Accept an ISO date or timestamp; timestamps are read in UTC."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument("Invalid session_date format")
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as err:
        raise InvalidArgument("Invalid session_date value") from err
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def _clean_campaign_id(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArgument("Invalid campaign_id format")
    return value.strip() or None


def _clean_linked_ids(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise InvalidArgument("Invalid linked_content_ids format")
    if any(not isinstance(item, str) or not item.strip() for item in value):
        raise InvalidArgument("linked_content_ids must be an array of non-empty strings")
    return [item.strip() for item in value]


async def _check_references(
    s: AsyncSession, *, user_id: str, campaign_id: str | None, linked_ids: list[str] | None
) -> None:
    if campaign_id is not None:
        await repos.require_owned_campaign(s, campaign_id=campaign_id, user_id=user_id)
    if linked_ids:
        found = await repos.get_content_by_ids(s, user_id=user_id, content_ids=linked_ids)
        if any(cid not in found for cid in linked_ids):
            raise NotFound("Linked content not found")


async def create_note(
    s: AsyncSession,
    *,
    user_id: str,
    title: Any,
    content: Any = None,
    session_date: Any = None,
    campaign_id: Any = None,
    linked_content_ids: Any = None,
) -> models.SessionNote:
    clean_title = title.strip() if isinstance(title, str) else ""
    if not clean_title:
        raise InvalidArgument("Missing required field: title")
    if content is not None and not isinstance(content, str):
        raise InvalidArgument("Invalid content format")
    values: dict[str, Any] = {
        "title": clean_title,
        "content": content or "",
        "campaign_id": _clean_campaign_id(campaign_id),
        "linked_content_ids": _clean_linked_ids(linked_content_ids),
    }
    if session_date is not None:
        values["session_date"] = parse_session_date(session_date)
    await _check_references(
        s,
        user_id=user_id,
        campaign_id=values["campaign_id"],
        linked_ids=values["linked_content_ids"],
    )

    note = await repos.create_session_note(s, user_id=user_id, values=values)
    inc_counter("session_note.created")
    log.info("session_note.created", note_id=note.id, campaign_id=note.campaign_id)
    return note


async def list_notes(
    s: AsyncSession, *, user_id: str, campaign_id: str | None = None
) -> list[models.SessionNote]:
    """Newest session first; ties go to the most recently edited note."""
    return await repos.list_session_notes(s, user_id=user_id, campaign_id=campaign_id or None)


async def get_note(s: AsyncSession, *, note_id: str, user_id: str) -> models.SessionNote:
    return await repos.require_owned_session_note(s, note_id=note_id, user_id=user_id)


async def update_note(
    s: AsyncSession, *, note_id: str, user_id: str, fields: Mapping[str, Any]
) -> models.SessionNote:
    """Partial edit. Only keys present in ``fields`` are touched.

    An explicit ``campaign_id`` of None detaches the note from its campaign and
    an explicit ``linked_content_ids`` of None clears the links.
    """
    values: dict[str, Any] = {}
    if "title" in fields:
        title = fields["title"]
        if not isinstance(title, str):
            raise InvalidArgument("Invalid title format")
        if not title.strip():
            raise InvalidArgument("Title cannot be empty")
        values["title"] = title.strip()
    if "content" in fields:
        if not isinstance(fields["content"], str):
            raise InvalidArgument("Invalid content format")
        values["content"] = fields["content"]
    if fields.get("session_date") is not None:
        values["session_date"] = parse_session_date(fields["session_date"])
    if "campaign_id" in fields:
        values["campaign_id"] = _clean_campaign_id(fields["campaign_id"])
    if "linked_content_ids" in fields:
        values["linked_content_ids"] = _clean_linked_ids(fields["linked_content_ids"])
    if not values:
        raise InvalidArgument("No valid fields to update")

    note = await repos.require_owned_session_note(s, note_id=note_id, user_id=user_id)
    await _check_references(
        s,
        user_id=user_id,
        campaign_id=values.get("campaign_id"),
        linked_ids=values.get("linked_content_ids"),
    )
    rows = await repos.update_session_note_fields(
        s, note_id=note_id, user_id=user_id, values=values
    )
    if rows == 0:
        raise NotFound("Session note not found")
    await s.refresh(note)
    inc_counter("session_note.updated")
    log.info("session_note.updated", note_id=note_id, fields=sorted(values))
    return note


async def delete_note(s: AsyncSession, *, note_id: str, user_id: str) -> None:
    rows = await repos.delete_session_note(s, note_id=note_id, user_id=user_id)
    if rows == 0:
        raise NotFound("Session note not found")
    inc_counter("session_note.deleted")
    log.info("session_note.deleted", note_id=note_id)
