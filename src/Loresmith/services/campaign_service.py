from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from Loresmith import models, repos
from Loresmith.errors import InvalidArgument, NotFound
from Loresmith.metrics import inc_counter

log = structlog.get_logger()


def _clean_name(name: Any, *, message: str) -> str:
    trimmed = name.strip() if isinstance(name, str) else ""
    if not trimmed:
        raise InvalidArgument(message)
    return trimmed


def _check_settings(settings: Any) -> dict[str, Any]:
    if not isinstance(settings, Mapping):
        raise InvalidArgument("Invalid settings format: settings must be a JSON object")
    return dict(settings)


async def create_campaign(
    s: AsyncSession,
    *,
    user_id: str,
    name: Any,
    description: Any = None,
    settings: Any = None,
) -> models.Campaign:
    clean = _clean_name(name, message="Missing required field: name")
    obj = await repos.create_campaign(
        s,
        user_id=user_id,
        name=clean,
        description=description if isinstance(description, str) else "",
        settings=_check_settings(settings) if settings is not None else {},
    )
    inc_counter("campaign.created")
    log.info("campaign.created", campaign_id=obj.id)
    return obj


async def list_campaigns(s: AsyncSession, *, user_id: str) -> list[models.Campaign]:
    return await repos.list_campaigns(s, user_id=user_id)


async def get_campaign(s: AsyncSession, *, campaign_id: str, user_id: str) -> models.Campaign:
    return await repos.require_owned_campaign(s, campaign_id=campaign_id, user_id=user_id)


async def update_campaign(
    s: AsyncSession,
    *,
    campaign_id: str,
    user_id: str,
    name: Any = None,
    description: Any = None,
    settings: Any = None,
) -> models.Campaign:
    values: dict[str, Any] = {}
    if name is not None:
        values["name"] = _clean_name(name, message="Campaign name cannot be empty")
    if description is not None:
        if not isinstance(description, str):
            raise InvalidArgument("Invalid description format")
        values["description"] = description
    if settings is not None:
        values["settings"] = _check_settings(settings)
    if not values:
        raise InvalidArgument("No valid fields to update")

    campaign = await repos.require_owned_campaign(s, campaign_id=campaign_id, user_id=user_id)
    rows = await repos.update_campaign_fields(
        s, campaign_id=campaign_id, user_id=user_id, values=values
    )
    if rows == 0:
        raise NotFound("Campaign not found")
    await s.refresh(campaign)
    inc_counter("campaign.updated")
    log.info("campaign.updated", campaign_id=campaign_id, fields=sorted(values))
    return campaign


async def delete_campaign(s: AsyncSession, *, campaign_id: str, user_id: str) -> None:
    rows = await repos.delete_campaign(s, campaign_id=campaign_id, user_id=user_id)
    if rows == 0:
        raise NotFound("Campaign not found")
    inc_counter("campaign.deleted")
    log.info("campaign.deleted", campaign_id=campaign_id)
