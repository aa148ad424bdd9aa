"""Saved content: create, list, fetch, delete.

Edits go through ``revision_service.apply_update`` so history stays in step.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from Loresmith import models, repos
from Loresmith.errors import InvalidArgument, NotFound
from Loresmith.metrics import inc_counter

log = structlog.get_logger()

# Minimal keys each kind of payload must carry to be worth saving
REQUIRED_KEYS: dict[models.ContentType, tuple[str, ...]] = {
    models.ContentType.character: ("name", "race", "class"),
    models.ContentType.environment: ("name", "description"),
    models.ContentType.mission: ("title", "description"),
}


def parse_content_type(value: Any) -> models.ContentType:
    try:
        return models.ContentType(value)
    except ValueError as err:
        raise InvalidArgument(
            "Invalid content type: must be character, environment, or mission"
        ) from err


def validate_payload(kind: models.ContentType, content_data: Any) -> dict[str, Any]:
    if not isinstance(content_data, Mapping):
        raise InvalidArgument("Content data must be an object")
    missing = [k for k in REQUIRED_KEYS[kind] if k not in content_data]
    if missing:
        raise InvalidArgument(
            f"Invalid {kind.value} data structure: missing {', '.join(missing)}"
        )
    return dict(content_data)


async def create_content(
    s: AsyncSession,
    *,
    user_id: str,
    type: str,
    scenario_input: str,
    content_data: Any,
    tags: list[str] | None = None,
    notes: str | None = None,
    is_favorite: bool | None = None,
) -> models.GeneratedContent:
    if not type or not scenario_input or content_data is None:
        raise InvalidArgument("Missing required fields: type, scenario, or contentData")
    kind = parse_content_type(type)
    payload = validate_payload(kind, content_data)
    obj = await repos.create_content(
        s,
        user_id=user_id,
        type=kind,
        scenario_input=scenario_input,
        content_data=payload,
        tags=tags,
        notes=notes,
        is_favorite=is_favorite,
    )
    inc_counter("content.created")
    log.info("content.created", content_id=obj.id, type=kind.value)
    return obj


async def list_content(
    s: AsyncSession,
    *,
    user_id: str,
    type: str | None = None,
    favorite_only: bool = False,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
    max_limit: int = 100,
) -> tuple[list[models.GeneratedContent], int]:
    kind = None
    # Unknown kinds are ignored rather than rejected, like an absent filter
    if type in {k.value for k in models.ContentType}:
        kind = models.ContentType(type)
    limit = max(1, min(int(limit), max_limit))
    offset = max(0, int(offset))
    return await repos.list_content(
        s,
        user_id=user_id,
        type=kind,
        favorite_only=favorite_only,
        search=search,
        limit=limit,
        offset=offset,
    )


async def get_content(s: AsyncSession, *, content_id: str, user_id: str) -> models.GeneratedContent:
    return await repos.require_owned_content(s, content_id=content_id, user_id=user_id)


async def delete_content(s: AsyncSession, *, content_id: str, user_id: str) -> None:
    rows = await repos.delete_content(s, content_id=content_id, user_id=user_id)
    if rows == 0:
        raise NotFound("Content not found")
    inc_counter("content.deleted")
    log.info("content.deleted", content_id=content_id)
