"""Revision history for generated content.

An edit is applied in two phases. The record update is the durable outcome
the caller asked for; the version snapshot written after it is best-effort
history, so a failed snapshot is logged and never undoes the update.
Restores keep the restored payload too, but there the new version is part
of the answer, so its failure is reported as an error after the commit.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from Loresmith import models, repos
from Loresmith.config import Settings, load_settings
from Loresmith.diffing import (
    build_change_summary,
    collect_diffs,
    deep_equal,
    tags_equal,
    top_level_changes,
)
from Loresmith.errors import InvalidArgument, NotFound, VersionNotRecorded
from Loresmith.metrics import inc_counter

log = structlog.get_logger()


@dataclass(frozen=True)
class ChangeSet:
    content_changed: bool = False
    changed_keys: tuple[str, ...] = ()
    notes_changed: bool = False
    tags_changed: bool = False
    favorite_changed: bool = False


@dataclass(frozen=True)
class VersionComparison:
    base_version_id: str
    compare_version_id: str
    base_version_number: int
    compare_version_number: int
    differences: list[dict[str, Any]]
    truncated: bool


@dataclass(frozen=True)
class RestoreResult:
    content: models.GeneratedContent
    restored_from: models.ContentVersion
    new_version: models.ContentVersion


def accepted_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Keep the mutable fields whose values have the expected shape; drop the rest."""
    out: dict[str, Any] = {}
    if isinstance(fields.get("is_favorite"), bool):
        out["is_favorite"] = fields["is_favorite"]
    tags = fields.get("tags")
    if isinstance(tags, (list, tuple)) and all(isinstance(t, str) for t in tags):
        out["tags"] = list(tags)
    if isinstance(fields.get("notes"), str):
        out["notes"] = fields["notes"]
    if isinstance(fields.get("content_data"), Mapping):
        out["content_data"] = dict(fields["content_data"])
    return out


def detect_changes(record: models.GeneratedContent, fields: Mapping[str, Any]) -> ChangeSet:
    """Compare proposed fields against the stored record."""
    favorite_changed = "is_favorite" in fields and fields["is_favorite"] != record.is_favorite
    tags_changed = "tags" in fields and not tags_equal(record.tags, fields["tags"])
    notes_changed = "notes" in fields and fields["notes"] != (record.notes or "")
    content_changed = False
    changed_keys: tuple[str, ...] = ()
    if "content_data" in fields:
        before, after = record.content_data, fields["content_data"]
        content_changed = not deep_equal(before, after)
        if content_changed and isinstance(before, Mapping) and isinstance(after, Mapping):
            changed_keys = tuple(top_level_changes(before, after))
    return ChangeSet(
        content_changed=content_changed,
        changed_keys=changed_keys,
        notes_changed=notes_changed,
        tags_changed=tags_changed,
        favorite_changed=favorite_changed,
    )


def summarize(changes: ChangeSet, *, max_keys: int) -> str:
    return build_change_summary(
        content_changed=changes.content_changed,
        changed_keys=changes.changed_keys,
        notes_changed=changes.notes_changed,
        tags_changed=changes.tags_changed,
        favorite_changed=changes.favorite_changed,
        max_keys=max_keys,
    )


async def record_version(
    s: AsyncSession,
    *,
    content: models.GeneratedContent,
    user_id: str,
    change_summary: str,
    max_attempts: int,
) -> models.ContentVersion:
    """Append a snapshot of ``content`` with the next version number.

    Each attempt reads the number and inserts inside one SAVEPOINT, so a
    failure at either step leaves the outer transaction usable. The unique
    (content_id, version_number) constraint turns a concurrent writer
    claiming the same number into an IntegrityError; the attempt is then
    repeated up to ``max_attempts`` times.
    """
    attempt = 0
    while True:
        attempt += 1
        number = None
        try:
            async with s.begin_nested():
                number = await repos.next_version_number(s, content_id=content.id)
                version = await repos.insert_version(
                    s,
                    content_id=content.id,
                    user_id=user_id,
                    version_number=number,
                    content_data=content.content_data,
                    change_summary=change_summary,
                    changed_by=user_id,
                )
        except IntegrityError:
            inc_counter("revision.version.conflict")
            log.warning(
                "revision.version.conflict",
                content_id=content.id,
                version_number=number,
                attempt=attempt,
            )
            if attempt >= max_attempts:
                raise
            continue
        inc_counter("revision.version.created")
        log.info(
            "revision.version.created",
            content_id=content.id,
            version_id=version.id,
            version_number=number,
        )
        return version


async def apply_update(
    s: AsyncSession,
    *,
    content_id: str,
    user_id: str,
    fields: Mapping[str, Any],
    change_summary: str | None = None,
    settings: Settings | None = None,
) -> models.GeneratedContent:
    """Apply a partial edit and, when the payload changed, snapshot it.

    Only the well-formed mutable fields present in ``fields`` are written. Returns
    the updated record; the snapshot (if any) is listed via ``list_versions``.
    """
    cfg = settings or load_settings()
    values = accepted_fields(fields)
    if not values:
        raise InvalidArgument("No valid fields to update")

    record = await repos.require_owned_content(s, content_id=content_id, user_id=user_id)
    changes = detect_changes(record, values)

    rows = await repos.update_content_fields(
        s, content_id=content_id, user_id=user_id, values=values
    )
    if rows == 0:
        # Deleted between the read and the write
        raise NotFound("Content not found")
    await s.refresh(record)
    inc_counter("content.updated")
    log.info(
        "content.updated",
        content_id=content_id,
        fields=sorted(values),
        content_changed=changes.content_changed,
    )

    if not changes.content_changed:
        return record

    explicit = (change_summary or "").strip()
    summary = explicit or summarize(changes, max_keys=cfg.revision_summary_max_keys)
    try:
        await record_version(
            s,
            content=record,
            user_id=user_id,
            change_summary=summary,
            max_attempts=cfg.revision_max_attempts,
        )
    except SQLAlchemyError:
        inc_counter("revision.version.failed")
        log.error("revision.version.failed", content_id=content_id, exc_info=True)
    return record


async def list_versions(
    s: AsyncSession, *, content_id: str, user_id: str
) -> list[models.ContentVersion]:
    await repos.require_owned_content(s, content_id=content_id, user_id=user_id)
    return await repos.list_versions(s, content_id=content_id, user_id=user_id)


async def get_version(
    s: AsyncSession, *, content_id: str, version_id: str, user_id: str
) -> models.ContentVersion:
    found = await repos.get_versions_by_ids(
        s, content_id=content_id, user_id=user_id, version_ids=[version_id]
    )
    version = found.get(version_id)
    if version is None:
        raise NotFound("Version not found")
    return version


async def compare_versions(
    s: AsyncSession,
    *,
    content_id: str,
    base_version_id: str,
    compare_version_id: str,
    user_id: str,
    settings: Settings | None = None,
) -> VersionComparison:
    cfg = settings or load_settings()
    if not base_version_id or not compare_version_id:
        raise InvalidArgument("Missing baseVersionId or compareVersionId")
    if base_version_id == compare_version_id:
        raise InvalidArgument("Version IDs must be different")
    found = await repos.get_versions_by_ids(
        s,
        content_id=content_id,
        user_id=user_id,
        version_ids=[base_version_id, compare_version_id],
    )
    base = found.get(base_version_id)
    other = found.get(compare_version_id)
    if base is None or other is None:
        raise NotFound("One or both versions not found")
    differences, truncated = collect_diffs(
        base.content_data, other.content_data, limit=cfg.version_diff_max_entries
    )
    return VersionComparison(
        base_version_id=base.id,
        compare_version_id=other.id,
        base_version_number=base.version_number,
        compare_version_number=other.version_number,
        differences=differences,
        truncated=truncated,
    )


async def restore_version(
    s: AsyncSession,
    *,
    content_id: str,
    version_id: str,
    user_id: str,
    change_summary: str | None = None,
    settings: Settings | None = None,
) -> RestoreResult:
    cfg = settings or load_settings()
    version = await get_version(s, content_id=content_id, version_id=version_id, user_id=user_id)
    record = await repos.require_owned_content(s, content_id=content_id, user_id=user_id)
    rows = await repos.update_content_fields(
        s,
        content_id=content_id,
        user_id=user_id,
        values={"content_data": version.content_data},
    )
    if rows == 0:
        raise NotFound("Content not found")
    await s.refresh(record)
    explicit = (change_summary or "").strip()
    summary = explicit or f"Restored to version {version.version_number}"
    try:
        new_version = await record_version(
            s,
            content=record,
            user_id=user_id,
            change_summary=summary,
            max_attempts=cfg.revision_max_attempts,
        )
    except SQLAlchemyError as err:
        # The restored payload stays; the caller is told history is missing
        inc_counter("revision.version.failed")
        log.error("revision.restore.version_failed", content_id=content_id, exc_info=True)
        raise VersionNotRecorded("Failed to create version after restore") from err
    inc_counter("revision.restored")
    log.info(
        "revision.restored",
        content_id=content_id,
        restored_from=version.version_number,
        new_version=new_version.version_number,
    )
    return RestoreResult(content=record, restored_from=version, new_version=new_version)
