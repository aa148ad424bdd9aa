"""Edit, history and linking composed end to end on schema-free payloads."""

import pytest

from Loresmith import models, repos
from Loresmith.services import link_service, revision_service

OWNER = "user-a"


@pytest.mark.asyncio
async def test_edit_history_then_link(db):
    # The engine never looks inside payloads, so kind-specific keys are not needed here
    c1 = await repos.create_content(
        db,
        user_id=OWNER,
        type=models.ContentType.mission,
        scenario_input="c1",
        content_data={"a": 1, "b": 2},
    )
    c2 = await repos.create_content(
        db,
        user_id=OWNER,
        type=models.ContentType.environment,
        scenario_input="c2",
        content_data={"z": True},
    )

    await revision_service.apply_update(
        db, content_id=c1.id, user_id=OWNER, fields={"content_data": {"a": 1, "b": 3, "c": 4}}
    )
    (v1,) = await revision_service.list_versions(db, content_id=c1.id, user_id=OWNER)
    assert v1.version_number == 1
    assert v1.content_data == {"a": 1, "b": 3, "c": 4}
    assert v1.change_summary == "Updated content (b, c)"

    await revision_service.apply_update(
        db, content_id=c1.id, user_id=OWNER, fields={"notes": "only notes"}
    )
    assert len(await revision_service.list_versions(db, content_id=c1.id, user_id=OWNER)) == 1

    await link_service.create_link(
        db, user_id=OWNER, source_id=c1.id, target_id=c2.id, link_type="uses"
    )
    from_c1 = await link_service.list_links(db, user_id=OWNER, content_id=c1.id)
    (out,) = from_c1.outgoing
    assert out.link_type == models.LinkType.uses
    assert out.content_id == c2.id

    from_c2 = await link_service.list_links(db, user_id=OWNER, content_id=c2.id)
    (inc,) = from_c2.incoming
    assert inc.id == out.id
    assert inc.content_id == c1.id
