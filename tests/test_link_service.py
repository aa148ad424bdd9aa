import pytest

from Loresmith import models, repos
from Loresmith.errors import Conflict, InvalidArgument, NotFound
from Loresmith.services import content_service, link_service

OWNER = "user-a"
OTHER = "user-b"


async def _env(db, name, user_id=OWNER):
    return await content_service.create_content(
        db,
        user_id=user_id,
        type="environment",
        scenario_input=f"{name} scenario",
        content_data={"name": name, "description": f"the {name}"},
    )


@pytest.mark.asyncio
async def test_create_and_list_both_directions(db):
    tavern = await _env(db, "tavern")
    city = await _env(db, "city")
    link = await link_service.create_link(
        db, user_id=OWNER, source_id=tavern.id, target_id=city.id, link_type="located_in"
    )
    assert link.link_type == models.LinkType.located_in

    from_tavern = await link_service.list_links(db, user_id=OWNER, content_id=tavern.id)
    assert [e.content_id for e in from_tavern.outgoing] == [city.id]
    assert from_tavern.outgoing[0].content.id == city.id
    assert from_tavern.incoming == []

    from_city = await link_service.list_links(db, user_id=OWNER, content_id=city.id)
    assert [e.content_id for e in from_city.incoming] == [tavern.id]
    assert from_city.incoming[0].link_type == models.LinkType.located_in
    assert from_city.outgoing == []


@pytest.mark.asyncio
async def test_self_link_and_bad_type_rejected_before_lookup(db):
    with pytest.raises(InvalidArgument):
        await link_service.create_link(
            db, user_id=OWNER, source_id="same", target_id="same", link_type="related"
        )
    with pytest.raises(InvalidArgument):
        await link_service.create_link(
            db, user_id=OWNER, source_id="a", target_id="b", link_type="friend_of"
        )


@pytest.mark.asyncio
async def test_foreign_endpoint_is_not_found(db):
    mine = await _env(db, "keep")
    theirs = await _env(db, "tower", user_id=OTHER)
    with pytest.raises(NotFound):
        await link_service.create_link(
            db, user_id=OWNER, source_id=mine.id, target_id=theirs.id, link_type="related"
        )
    with pytest.raises(NotFound):
        await link_service.list_links(db, user_id=OWNER, content_id=theirs.id)


@pytest.mark.asyncio
async def test_duplicate_pair_conflicts_even_with_other_type(db):
    a = await _env(db, "a")
    b = await _env(db, "b")
    await link_service.create_link(
        db, user_id=OWNER, source_id=a.id, target_id=b.id, link_type="related"
    )
    with pytest.raises(Conflict):
        await link_service.create_link(
            db, user_id=OWNER, source_id=a.id, target_id=b.id, link_type="uses"
        )
    # The reverse direction is a different edge
    back = await link_service.create_link(
        db, user_id=OWNER, source_id=b.id, target_id=a.id, link_type="part_of"
    )
    assert back.source_content_id == b.id


@pytest.mark.asyncio
async def test_delete_link(db):
    a = await _env(db, "a")
    b = await _env(db, "b")
    link = await link_service.create_link(
        db, user_id=OWNER, source_id=a.id, target_id=b.id, link_type="involves"
    )
    with pytest.raises(NotFound):
        await link_service.delete_link(db, user_id=OTHER, link_id=link.id)
    await link_service.delete_link(db, user_id=OWNER, link_id=link.id)
    listing = await link_service.list_links(db, user_id=OWNER, content_id=a.id)
    assert listing.outgoing == []
    with pytest.raises(NotFound):
        await link_service.delete_link(db, user_id=OWNER, link_id=link.id)
    with pytest.raises(InvalidArgument):
        await link_service.delete_link(db, user_id=OWNER, link_id="")


@pytest.mark.asyncio
async def test_deleting_content_removes_its_edges(db):
    a = await _env(db, "a")
    b = await _env(db, "b")
    await link_service.create_link(
        db, user_id=OWNER, source_id=a.id, target_id=b.id, link_type="related"
    )
    await content_service.delete_content(db, content_id=b.id, user_id=OWNER)
    listing = await link_service.list_links(db, user_id=OWNER, content_id=a.id)
    assert listing.outgoing == []


@pytest.mark.asyncio
async def test_unreadable_counterpart_is_listed_without_content(db):
    mine = await _env(db, "mine")
    theirs = await _env(db, "theirs", user_id=OTHER)
    # Stored directly; the service would refuse a foreign endpoint
    link = await repos.insert_link(
        db,
        user_id=OWNER,
        source_id=mine.id,
        target_id=theirs.id,
        link_type=models.LinkType.related,
    )
    listing = await link_service.list_links(db, user_id=OWNER, content_id=mine.id)
    (entry,) = listing.outgoing
    assert entry.id == link.id
    assert entry.content_id == theirs.id
    assert entry.content is None
