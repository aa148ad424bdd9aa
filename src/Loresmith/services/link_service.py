from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from Loresmith import models, repos
from Loresmith.errors import Conflict, InvalidArgument, NotFound
from Loresmith.metrics import inc_counter

log = structlog.get_logger()


@dataclass(frozen=True)
class LinkEntry:
    id: str
    # The record on the other end of the edge
    content_id: str
    link_type: models.LinkType
    created_at: datetime
    content: models.GeneratedContent | None


@dataclass
class LinkListing:
    outgoing: list[LinkEntry] = field(default_factory=list)
    incoming: list[LinkEntry] = field(default_factory=list)


def parse_link_type(value: str | models.LinkType) -> models.LinkType:
    try:
        return models.LinkType(value)
    except ValueError as err:
        raise InvalidArgument("Invalid link type") from err


async def create_link(
    s: AsyncSession, *, user_id: str, source_id: str, target_id: str, link_type: str
) -> models.ContentLink:
    if not source_id or not target_id:
        raise InvalidArgument("Missing required fields: targetContentId or linkType")
    if source_id == target_id:
        raise InvalidArgument("Cannot link content to itself")
    kind = parse_link_type(link_type)

    source = await repos.get_owned(
        s, models.GeneratedContent, entity_id=source_id, user_id=user_id
    )
    target = await repos.get_owned(
        s, models.GeneratedContent, entity_id=target_id, user_id=user_id
    )
    if source is None or target is None:
        raise NotFound("One or both content items not found or access denied")

    # The unique constraint still backs this check when two creates race
    if await repos.get_link_for_pair(s, source_id=source_id, target_id=target_id) is not None:
        inc_counter("link.conflict")
        raise Conflict("Link already exists")
    try:
        link = await repos.insert_link(
            s, user_id=user_id, source_id=source_id, target_id=target_id, link_type=kind
        )
    except Conflict:
        inc_counter("link.conflict")
        raise
    inc_counter("link.created")
    log.info(
        "link.created",
        link_id=link.id,
        source_content_id=source_id,
        target_content_id=target_id,
        link_type=kind.value,
    )
    return link


async def list_links(s: AsyncSession, *, user_id: str, content_id: str) -> LinkListing:
    """Outgoing and incoming edges of ``content_id`` with their counterpart records.

    Counterparts are loaded in one batch; an edge whose counterpart vanished
    keeps its place with ``content=None``.
    """
    await repos.require_owned_content(s, content_id=content_id, user_id=user_id)
    outgoing = await repos.list_links_from(s, user_id=user_id, content_id=content_id)
    incoming = await repos.list_links_to(s, user_id=user_id, content_id=content_id)

    counterpart_ids = {link.target_content_id for link in outgoing}
    counterpart_ids.update(link.source_content_id for link in incoming)
    by_id = await repos.get_content_by_ids(s, user_id=user_id, content_ids=counterpart_ids)

    def _entry(link: models.ContentLink, other_id: str) -> LinkEntry:
        return LinkEntry(
            id=link.id,
            content_id=other_id,
            link_type=link.link_type,
            created_at=link.created_at,
            content=by_id.get(other_id),
        )

    return LinkListing(
        outgoing=[_entry(link, link.target_content_id) for link in outgoing],
        incoming=[_entry(link, link.source_content_id) for link in incoming],
    )


async def delete_link(s: AsyncSession, *, user_id: str, link_id: str) -> None:
    if not link_id:
        raise InvalidArgument("Missing linkId query parameter")
    rows = await repos.delete_link(s, user_id=user_id, link_id=link_id)
    if rows == 0:
        raise NotFound("Link not found")
    inc_counter("link.deleted")
    log.info("link.deleted", link_id=link_id)
