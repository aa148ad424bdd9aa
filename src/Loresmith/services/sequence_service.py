"""Ordering of content attached to a campaign.

Sequence values are sort keys, not positions: gaps are fine, and two entries
that raced to the same value fall back to attach order.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from Loresmith import models, repos
from Loresmith.errors import InvalidArgument, NotFound
from Loresmith.metrics import inc_counter

log = structlog.get_logger()


@dataclass(frozen=True)
class CampaignEntry:
    content_id: str
    sequence: int
    notes: str
    # Snapshot of the attached record, None when it no longer resolves
    content: dict[str, Any] | None


def validate_sequence(value: Any) -> int:
    # bool is an int subclass; True is not a sequence number
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgument("Sequence must be a non-negative integer")
    return value


def _validate_notes(value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidArgument("Invalid notes format")
    return value


def content_snapshot(record: models.GeneratedContent) -> dict[str, Any]:
    return {
        "id": record.id,
        "type": record.type.value,
        "scenario_input": record.scenario_input,
        "content_data": record.content_data,
        "created_at": record.created_at,
    }


async def attach(
    s: AsyncSession,
    *,
    campaign_id: str,
    content_id: str,
    user_id: str,
    sequence: int | None = None,
    notes: str | None = None,
) -> models.CampaignContent:
    if not content_id:
        raise InvalidArgument("Missing required field: contentId")
    if sequence is not None:
        sequence = validate_sequence(sequence)
    if notes is not None:
        notes = _validate_notes(notes)
    await repos.require_owned_campaign(s, campaign_id=campaign_id, user_id=user_id)
    await repos.require_owned_content(s, content_id=content_id, user_id=user_id)

    if sequence is None:
        # Read-then-write: concurrent attaches may pick the same value
        last = await repos.get_max_sequence(s, campaign_id=campaign_id)
        sequence = last + 1 if last is not None else 0

    entry = await repos.insert_campaign_content(
        s,
        campaign_id=campaign_id,
        content_id=content_id,
        sequence=sequence,
        notes=notes or "",
    )
    inc_counter("sequence.attached")
    log.info(
        "sequence.attached",
        campaign_id=campaign_id,
        content_id=content_id,
        sequence=sequence,
    )
    return entry


async def reorder(
    s: AsyncSession,
    *,
    campaign_id: str,
    content_id: str,
    user_id: str,
    sequence: int | None = None,
    notes: str | None = None,
) -> models.CampaignContent:
    if not content_id:
        raise InvalidArgument("Missing required field: contentId")
    values: dict[str, Any] = {}
    if sequence is not None:
        values["sequence"] = validate_sequence(sequence)
    if notes is not None:
        values["notes"] = _validate_notes(notes)
    if not values:
        raise InvalidArgument("No valid fields to update")

    await repos.require_owned_campaign(s, campaign_id=campaign_id, user_id=user_id)
    rows = await repos.update_campaign_entry(
        s, campaign_id=campaign_id, content_id=content_id, values=values
    )
    if rows == 0:
        raise NotFound("Campaign content not found")
    entry = await repos.get_campaign_entry(s, campaign_id=campaign_id, content_id=content_id)
    if entry is None:
        raise NotFound("Campaign content not found")
    await s.refresh(entry)
    inc_counter("sequence.updated")
    log.info("sequence.updated", campaign_id=campaign_id, content_id=content_id, **values)
    return entry


async def detach(s: AsyncSession, *, campaign_id: str, content_id: str, user_id: str) -> None:
    if not content_id:
        raise InvalidArgument("Missing required field: contentId")
    await repos.require_owned_campaign(s, campaign_id=campaign_id, user_id=user_id)
    rows = await repos.delete_campaign_entry(s, campaign_id=campaign_id, content_id=content_id)
    if rows == 0:
        raise NotFound("Campaign content not found")
    inc_counter("sequence.detached")
    log.info("sequence.detached", campaign_id=campaign_id, content_id=content_id)


async def list_campaign_content(
    s: AsyncSession, *, campaign_id: str, user_id: str
) -> list[CampaignEntry]:
    await repos.require_owned_campaign(s, campaign_id=campaign_id, user_id=user_id)
    rows = await repos.list_campaign_entries(s, campaign_id=campaign_id, user_id=user_id)
    return [
        CampaignEntry(
            content_id=entry.content_id,
            sequence=entry.sequence,
            notes=entry.notes or "",
            content=content_snapshot(record) if record is not None else None,
        )
        for entry, record in rows
    ]
