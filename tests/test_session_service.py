from datetime import date

import pytest

from Loresmith.errors import InvalidArgument, NotFound
from Loresmith.services import campaign_service, content_service, session_service

OWNER = "user-a"
OTHER = "user-b"


async def _npc(db, name="Bram", user_id=OWNER):
    return await content_service.create_content(
        db,
        user_id=user_id,
        type="character",
        scenario_input=name,
        content_data={"name": name, "race": "human", "class": "fighter", "level": 2},
    )


async def _campaign(db, user_id=OWNER):
    return await campaign_service.create_campaign(db, user_id=user_id, name="Frostfall")


def test_parse_session_date_forms():
    assert session_service.parse_session_date("2026-03-14") == date(2026, 3, 14)
    assert session_service.parse_session_date(" 2026-03-14T23:30:00-02:00 ") == date(2026, 3, 15)
    assert session_service.parse_session_date("2026-03-14T10:00:00") == date(2026, 3, 14)
    with pytest.raises(InvalidArgument, match="format"):
        session_service.parse_session_date("  ")
    with pytest.raises(InvalidArgument, match="value"):
        session_service.parse_session_date("last tuesday")


@pytest.mark.asyncio
async def test_create_with_campaign_and_links(db):
    camp = await _campaign(db)
    npc = await _npc(db)
    note = await session_service.create_note(
        db,
        user_id=OWNER,
        title="  Session 1 ",
        content="The party met Bram.",
        session_date="2026-03-14",
        campaign_id=camp.id,
        linked_content_ids=[f" {npc.id} "],
    )
    assert note.title == "Session 1"
    assert note.session_date == date(2026, 3, 14)
    assert note.campaign_id == camp.id
    assert note.linked_content_ids == [npc.id]


@pytest.mark.asyncio
async def test_create_defaults(db):
    note = await session_service.create_note(db, user_id=OWNER, title="Loose notes")
    assert note.content == ""
    assert note.campaign_id is None
    assert note.linked_content_ids == []
    assert isinstance(note.session_date, date)


@pytest.mark.asyncio
async def test_create_validation(db):
    with pytest.raises(InvalidArgument, match="title"):
        await session_service.create_note(db, user_id=OWNER, title="   ")
    with pytest.raises(InvalidArgument, match="content"):
        await session_service.create_note(db, user_id=OWNER, title="t", content=5)
    with pytest.raises(InvalidArgument, match="campaign_id"):
        await session_service.create_note(db, user_id=OWNER, title="t", campaign_id=7)
    with pytest.raises(InvalidArgument, match="non-empty"):
        await session_service.create_note(
            db, user_id=OWNER, title="t", linked_content_ids=["ok", " "]
        )
    with pytest.raises(InvalidArgument, match="linked_content_ids"):
        await session_service.create_note(
            db, user_id=OWNER, title="t", linked_content_ids="abc"
        )


@pytest.mark.asyncio
async def test_foreign_campaign_or_content_is_not_found(db):
    theirs = await _campaign(db, user_id=OTHER)
    their_npc = await _npc(db, user_id=OTHER)
    with pytest.raises(NotFound, match="Campaign"):
        await session_service.create_note(db, user_id=OWNER, title="t", campaign_id=theirs.id)
    with pytest.raises(NotFound, match="Linked content"):
        await session_service.create_note(
            db, user_id=OWNER, title="t", linked_content_ids=[their_npc.id]
        )
    assert await session_service.list_notes(db, user_id=OWNER) == []


@pytest.mark.asyncio
async def test_list_orders_by_session_date_and_filters_by_campaign(db):
    camp = await _campaign(db)
    early = await session_service.create_note(
        db, user_id=OWNER, title="one", session_date="2026-01-01", campaign_id=camp.id
    )
    late = await session_service.create_note(
        db, user_id=OWNER, title="two", session_date="2026-02-01"
    )
    await session_service.create_note(db, user_id=OTHER, title="not mine")

    listed = await session_service.list_notes(db, user_id=OWNER)
    assert [n.id for n in listed] == [late.id, early.id]
    in_camp = await session_service.list_notes(db, user_id=OWNER, campaign_id=camp.id)
    assert [n.id for n in in_camp] == [early.id]


@pytest.mark.asyncio
async def test_update_partial_and_explicit_clears(db):
    camp = await _campaign(db)
    npc = await _npc(db)
    note = await session_service.create_note(
        db, user_id=OWNER, title="t", campaign_id=camp.id, linked_content_ids=[npc.id]
    )
    updated = await session_service.update_note(
        db, note_id=note.id, user_id=OWNER, fields={"content": "recap", "title": " Recap "}
    )
    assert (updated.title, updated.content) == ("Recap", "recap")
    assert updated.campaign_id == camp.id

    cleared = await session_service.update_note(
        db,
        note_id=note.id,
        user_id=OWNER,
        fields={"campaign_id": None, "linked_content_ids": None},
    )
    assert cleared.campaign_id is None
    assert cleared.linked_content_ids == []


@pytest.mark.asyncio
async def test_update_validation_and_ownership(db):
    note = await session_service.create_note(db, user_id=OWNER, title="t")
    with pytest.raises(InvalidArgument, match="No valid fields"):
        await session_service.update_note(db, note_id=note.id, user_id=OWNER, fields={})
    with pytest.raises(InvalidArgument, match="empty"):
        await session_service.update_note(
            db, note_id=note.id, user_id=OWNER, fields={"title": " "}
        )
    with pytest.raises(NotFound):
        await session_service.update_note(
            db, note_id=note.id, user_id=OTHER, fields={"title": "mine"}
        )
    theirs = await _campaign(db, user_id=OTHER)
    with pytest.raises(NotFound, match="Campaign"):
        await session_service.update_note(
            db, note_id=note.id, user_id=OWNER, fields={"campaign_id": theirs.id}
        )
    again = await session_service.get_note(db, note_id=note.id, user_id=OWNER)
    assert again.title == "t"
    assert again.campaign_id is None


@pytest.mark.asyncio
async def test_deleting_campaign_keeps_note(db):
    camp = await _campaign(db)
    note = await session_service.create_note(db, user_id=OWNER, title="t", campaign_id=camp.id)
    await campaign_service.delete_campaign(db, campaign_id=camp.id, user_id=OWNER)
    await db.refresh(note)
    assert note.campaign_id is None


@pytest.mark.asyncio
async def test_delete(db):
    note = await session_service.create_note(db, user_id=OWNER, title="t")
    with pytest.raises(NotFound):
        await session_service.delete_note(db, note_id=note.id, user_id=OTHER)
    await session_service.delete_note(db, note_id=note.id, user_id=OWNER)
    with pytest.raises(NotFound):
        await session_service.get_note(db, note_id=note.id, user_id=OWNER)
