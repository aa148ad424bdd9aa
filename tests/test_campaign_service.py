import pytest

from Loresmith.errors import InvalidArgument, NotFound
from Loresmith.services import campaign_service

OWNER = "user-a"
OTHER = "user-b"


@pytest.mark.asyncio
async def test_create_trims_name_and_defaults(db):
    camp = await campaign_service.create_campaign(db, user_id=OWNER, name="  Frostfall ")
    assert camp.name == "Frostfall"
    assert camp.description == ""
    assert camp.settings == {}


@pytest.mark.asyncio
async def test_create_validation(db):
    with pytest.raises(InvalidArgument):
        await campaign_service.create_campaign(db, user_id=OWNER, name="   ")
    with pytest.raises(InvalidArgument):
        await campaign_service.create_campaign(db, user_id=OWNER, name="x", settings=["a"])


@pytest.mark.asyncio
async def test_update_fields(db):
    camp = await campaign_service.create_campaign(db, user_id=OWNER, name="Frostfall")
    updated = await campaign_service.update_campaign(
        db,
        campaign_id=camp.id,
        user_id=OWNER,
        description="winter war",
        settings={"tone": "grim"},
    )
    assert updated.description == "winter war"
    assert updated.settings == {"tone": "grim"}
    assert updated.name == "Frostfall"

    with pytest.raises(InvalidArgument):
        await campaign_service.update_campaign(db, campaign_id=camp.id, user_id=OWNER)
    with pytest.raises(InvalidArgument):
        await campaign_service.update_campaign(
            db, campaign_id=camp.id, user_id=OWNER, name=" "
        )
    with pytest.raises(NotFound):
        await campaign_service.update_campaign(
            db, campaign_id=camp.id, user_id=OTHER, name="stolen"
        )


@pytest.mark.asyncio
async def test_list_is_owner_scoped(db):
    await campaign_service.create_campaign(db, user_id=OWNER, name="One")
    await campaign_service.create_campaign(db, user_id=OWNER, name="Two")
    await campaign_service.create_campaign(db, user_id=OTHER, name="Theirs")
    rows = await campaign_service.list_campaigns(db, user_id=OWNER)
    assert {c.name for c in rows} == {"One", "Two"}


@pytest.mark.asyncio
async def test_delete(db):
    camp = await campaign_service.create_campaign(db, user_id=OWNER, name="Gone")
    with pytest.raises(NotFound):
        await campaign_service.delete_campaign(db, campaign_id=camp.id, user_id=OTHER)
    await campaign_service.delete_campaign(db, campaign_id=camp.id, user_id=OWNER)
    with pytest.raises(NotFound):
        await campaign_service.get_campaign(db, campaign_id=camp.id, user_id=OWNER)
