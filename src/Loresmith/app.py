"""FastAPI app entrypoint for Loresmith."""

import time
import uuid
from typing import Any

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, ORJSONResponse

from Loresmith import repos
from Loresmith.config import load_settings
from Loresmith.db import session_scope
from Loresmith.errors import LoresmithError, Unauthorized
from Loresmith.logging import redact_settings, setup_logging
from Loresmith.metrics import get_counters, inc_counter
from Loresmith.schemas import (
    CampaignContentAttach,
    CampaignContentOut,
    CampaignContentRef,
    CampaignCreate,
    CampaignEntryOut,
    CampaignOut,
    CampaignPatch,
    ContentCreate,
    ContentOut,
    ContentPatch,
    LinkCreate,
    LinkEntryOut,
    LinkOut,
    SessionNoteCreate,
    SessionNoteOut,
    SessionNotePatch,
    VersionOut,
    VersionRestore,
    VersionSummaryOut,
)
from Loresmith.services import (
    campaign_service,
    content_service,
    link_service,
    revision_service,
    sequence_service,
    session_service,
)

log = structlog.get_logger()
settings = load_settings()
setup_logging(settings)
app = FastAPI(title="Loresmith", default_response_class=ORJSONResponse)

USER_HEADER = "X-User-Id"


@app.on_event("startup")
async def startup():
    log.info("app.startup", config=redact_settings(settings))


@app.exception_handler(LoresmithError)
async def loresmith_error_handler(request: Request, exc: LoresmithError):
    inc_counter(f"http.error.{exc.status_code}")
    log.info(
        "http.request.rejected",
        http_path=str(request.url.path),
        http_status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Assign a request_id, bind it to structlog context, and measure duration."""
    from structlog.contextvars import bind_contextvars, clear_contextvars

    request_id = str(uuid.uuid4())
    start = time.perf_counter()
    bind_contextvars(request_id=request_id)
    status_code = 500
    try:
        response = await call_next(request)
        status_code = getattr(response, "status_code", 200)
        return response
    finally:
        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info(
            "http.request.completed",
            http_path=str(request.url.path),
            http_method=request.method,
            http_status_code=status_code,
            duration_ms=duration_ms,
        )
        clear_contextvars()


async def current_user_id(
    x_user_id: str | None = Header(default=None, alias=USER_HEADER),
) -> str:
    # Identity is resolved upstream; this app only trusts the forwarded header
    if not x_user_id or not x_user_id.strip():
        raise Unauthorized("Unauthorized")
    from structlog.contextvars import bind_contextvars

    user_id = x_user_id.strip()
    bind_contextvars(user_id=user_id)
    return user_id


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _content(obj) -> dict[str, Any]:
    return _dump(ContentOut.model_validate(obj))


def _campaign(obj) -> dict[str, Any]:
    return _dump(CampaignOut.model_validate(obj))


# -----------------------------
# Content
# -----------------------------


@app.get("/api/content")
async def list_content(
    type: str | None = None,
    favorite: bool = False,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
    user_id: str = Depends(current_user_id),
):
    async with session_scope() as s:
        rows, total = await content_service.list_content(
            s,
            user_id=user_id,
            type=type,
            favorite_only=favorite,
            search=search,
            limit=limit,
            offset=offset,
            max_limit=settings.content_page_size_max,
        )
    return {
        "data": [_content(r) for r in rows],
        "total": total,
        "limit": min(max(1, limit), settings.content_page_size_max),
        "offset": max(0, offset),
    }


@app.post("/api/content", status_code=201)
async def create_content(body: ContentCreate, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        obj = await content_service.create_content(
            s,
            user_id=user_id,
            type=body.type or "",
            scenario_input=body.scenario or "",
            content_data=body.content_data,
            tags=body.tags,
            notes=body.notes,
            is_favorite=body.is_favorite,
        )
    return {"data": _content(obj)}


@app.get("/api/content/{content_id}")
async def get_content(content_id: str, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        obj = await content_service.get_content(s, content_id=content_id, user_id=user_id)
    return {"data": _content(obj)}


@app.patch("/api/content/{content_id}")
async def update_content(
    content_id: str, body: ContentPatch, user_id: str = Depends(current_user_id)
):
    async with session_scope() as s:
        obj = await revision_service.apply_update(
            s,
            content_id=content_id,
            user_id=user_id,
            fields=body.fields(),
            change_summary=body.change_summary,
            settings=settings,
        )
    return {"data": _content(obj)}


@app.delete("/api/content/{content_id}")
async def delete_content(content_id: str, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        await content_service.delete_content(s, content_id=content_id, user_id=user_id)
    return {"data": {"success": True}}


# -----------------------------
# Versions
# -----------------------------


@app.get("/api/content/{content_id}/versions")
async def list_versions(content_id: str, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        versions = await revision_service.list_versions(
            s, content_id=content_id, user_id=user_id
        )
    return {"data": [_dump(VersionSummaryOut.model_validate(v)) for v in versions]}


@app.post("/api/content/{content_id}/versions")
async def restore_version(
    content_id: str, body: VersionRestore, user_id: str = Depends(current_user_id)
):
    async with session_scope() as s:
        result = await revision_service.restore_version(
            s,
            content_id=content_id,
            version_id=body.version_id,
            user_id=user_id,
            change_summary=body.change_summary,
            settings=settings,
        )
    return {
        "data": {
            "content": _content(result.content),
            "restoredFromVersion": result.restored_from.version_number,
            "newVersion": _dump(VersionSummaryOut.model_validate(result.new_version)),
        }
    }


# Declared before /{version_id} so "compare" is not taken for an id
@app.get("/api/content/{content_id}/versions/compare")
async def compare_versions(
    content_id: str,
    base_version_id: str | None = Query(default=None, alias="baseVersionId"),
    compare_version_id: str | None = Query(default=None, alias="compareVersionId"),
    user_id: str = Depends(current_user_id),
):
    async with session_scope() as s:
        cmp = await revision_service.compare_versions(
            s,
            content_id=content_id,
            base_version_id=base_version_id or "",
            compare_version_id=compare_version_id or "",
            user_id=user_id,
            settings=settings,
        )
    return {
        "data": {
            "baseVersion": {"id": cmp.base_version_id, "versionNumber": cmp.base_version_number},
            "compareVersion": {
                "id": cmp.compare_version_id,
                "versionNumber": cmp.compare_version_number,
            },
            "differences": cmp.differences,
            "truncated": cmp.truncated,
        }
    }


@app.get("/api/content/{content_id}/versions/{version_id}")
async def get_version(
    content_id: str, version_id: str, user_id: str = Depends(current_user_id)
):
    async with session_scope() as s:
        version = await revision_service.get_version(
            s, content_id=content_id, version_id=version_id, user_id=user_id
        )
    return {"data": _dump(VersionOut.model_validate(version))}


# -----------------------------
# Links
# -----------------------------


@app.get("/api/content/{content_id}/links")
async def list_links(content_id: str, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        listing = await link_service.list_links(s, user_id=user_id, content_id=content_id)
    return {
        "data": {
            "outgoing": [_dump(LinkEntryOut.model_validate(e)) for e in listing.outgoing],
            "incoming": [_dump(LinkEntryOut.model_validate(e)) for e in listing.incoming],
        }
    }


@app.post("/api/content/{content_id}/links", status_code=201)
async def create_link(
    content_id: str, body: LinkCreate, user_id: str = Depends(current_user_id)
):
    async with session_scope() as s:
        link = await link_service.create_link(
            s,
            user_id=user_id,
            source_id=content_id,
            target_id=body.target_content_id or "",
            link_type=body.link_type or "",
        )
    return {"data": _dump(LinkOut.model_validate(link))}


@app.delete("/api/content/{content_id}/links")
async def delete_link(
    content_id: str,
    link_id: str | None = Query(default=None, alias="linkId"),
    user_id: str = Depends(current_user_id),
):
    async with session_scope() as s:
        await link_service.delete_link(s, user_id=user_id, link_id=link_id or "")
    return {"data": {"success": True}}


# -----------------------------
# Campaigns
# -----------------------------


@app.get("/api/campaigns")
async def list_campaigns(user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        rows = await campaign_service.list_campaigns(s, user_id=user_id)
    return {"data": [_campaign(c) for c in rows]}


@app.post("/api/campaigns", status_code=201)
async def create_campaign(body: CampaignCreate, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        obj = await campaign_service.create_campaign(
            s,
            user_id=user_id,
            name=body.name,
            description=body.description,
            settings=body.settings,
        )
    return {"data": _campaign(obj)}


@app.get("/api/campaigns/{campaign_id}")
async def get_campaign(campaign_id: str, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        obj = await campaign_service.get_campaign(s, campaign_id=campaign_id, user_id=user_id)
        entries = await sequence_service.list_campaign_content(
            s, campaign_id=campaign_id, user_id=user_id
        )
    data = _campaign(obj)
    data["content"] = [_dump(CampaignEntryOut.model_validate(e)) for e in entries]
    return {"data": data}


@app.patch("/api/campaigns/{campaign_id}")
async def update_campaign(
    campaign_id: str, body: CampaignPatch, user_id: str = Depends(current_user_id)
):
    async with session_scope() as s:
        obj = await campaign_service.update_campaign(
            s,
            campaign_id=campaign_id,
            user_id=user_id,
            name=body.name,
            description=body.description,
            settings=body.settings,
        )
    return {"data": _campaign(obj)}


@app.delete("/api/campaigns/{campaign_id}")
async def delete_campaign(campaign_id: str, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        await campaign_service.delete_campaign(s, campaign_id=campaign_id, user_id=user_id)
    return {"data": {"success": True}}


@app.post("/api/campaigns/{campaign_id}/content", status_code=201)
async def attach_campaign_content(
    campaign_id: str, body: CampaignContentAttach, user_id: str = Depends(current_user_id)
):
    async with session_scope() as s:
        entry = await sequence_service.attach(
            s,
            campaign_id=campaign_id,
            content_id=body.content_id or "",
            user_id=user_id,
            sequence=body.sequence,
            notes=body.notes,
        )
    return {"data": _dump(CampaignContentOut.model_validate(entry))}


@app.patch("/api/campaigns/{campaign_id}/content")
async def update_campaign_content(
    campaign_id: str, body: CampaignContentAttach, user_id: str = Depends(current_user_id)
):
    async with session_scope() as s:
        entry = await sequence_service.reorder(
            s,
            campaign_id=campaign_id,
            content_id=body.content_id or "",
            user_id=user_id,
            sequence=body.sequence,
            notes=body.notes,
        )
    return {"data": _dump(CampaignContentOut.model_validate(entry))}


@app.delete("/api/campaigns/{campaign_id}/content")
async def detach_campaign_content(
    campaign_id: str, body: CampaignContentRef, user_id: str = Depends(current_user_id)
):
    async with session_scope() as s:
        await sequence_service.detach(
            s, campaign_id=campaign_id, content_id=body.content_id or "", user_id=user_id
        )
    return {"data": {"success": True}}


# -----------------------------
# Session notes
# -----------------------------


def _note(obj) -> dict[str, Any]:
    return _dump(SessionNoteOut.model_validate(obj))


@app.get("/api/sessions")
async def list_session_notes(
    campaign_id: str | None = Query(default=None, alias="campaignId"),
    user_id: str = Depends(current_user_id),
):
    async with session_scope() as s:
        rows = await session_service.list_notes(s, user_id=user_id, campaign_id=campaign_id)
    return {"data": [_note(n) for n in rows]}


@app.post("/api/sessions", status_code=201)
async def create_session_note(body: SessionNoteCreate, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        note = await session_service.create_note(
            s,
            user_id=user_id,
            title=body.title,
            content=body.content,
            session_date=body.session_date,
            campaign_id=body.campaign_id,
            linked_content_ids=body.linked_content_ids,
        )
    return {"data": _note(note)}


@app.get("/api/sessions/{note_id}")
async def get_session_note(note_id: str, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        note = await session_service.get_note(s, note_id=note_id, user_id=user_id)
    return {"data": _note(note)}


@app.patch("/api/sessions/{note_id}")
async def update_session_note(
    note_id: str, body: SessionNotePatch, user_id: str = Depends(current_user_id)
):
    async with session_scope() as s:
        note = await session_service.update_note(
            s, note_id=note_id, user_id=user_id, fields=body.fields()
        )
    return {"data": _note(note)}


@app.delete("/api/sessions/{note_id}")
async def delete_session_note(note_id: str, user_id: str = Depends(current_user_id)):
    async with session_scope() as s:
        await session_service.delete_note(s, note_id=note_id, user_id=user_id)
    return {"data": {"success": True}}


# -----------------------------
# Ops
# -----------------------------


@app.get("/healthz")
async def healthz():
    try:
        async with session_scope() as s:
            await repos.healthcheck(s)
    except Exception as err:
        raise HTTPException(status_code=500, detail=f"unhealthy: {err}") from err
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    if not getattr(settings, "metrics_endpoint_enabled", False):
        raise HTTPException(status_code=404, detail="metrics disabled")
    return get_counters()
