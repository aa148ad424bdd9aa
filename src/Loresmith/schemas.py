# schemas.py

from datetime import date, datetime
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
)

from Loresmith.models import ContentType, LinkType

# -----------------------------
# Requests
# -----------------------------


class ContentCreate(BaseModel):
    type: str | None = None
    scenario: str | None = None
    content_data: dict[str, Any] | None = Field(default=None, alias="contentData")
    tags: list[StrictStr] | None = None
    notes: StrictStr | None = None
    is_favorite: StrictBool | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ContentPatch(BaseModel):
    """Partial edit; omitted fields are left untouched."""

    is_favorite: StrictBool | None = None
    tags: list[StrictStr] | None = None
    notes: StrictStr | None = None
    content_data: dict[str, Any] | None = None
    change_summary: StrictStr | None = None

    model_config = ConfigDict(extra="ignore")

    def fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"change_summary"})


class VersionRestore(BaseModel):
    version_id: str = Field(alias="versionId")
    change_summary: StrictStr | None = None

    model_config = ConfigDict(populate_by_name=True)


class LinkCreate(BaseModel):
    target_content_id: str | None = Field(default=None, alias="targetContentId")
    link_type: str | None = Field(default=None, alias="linkType")

    model_config = ConfigDict(populate_by_name=True)


class CampaignCreate(BaseModel):
    name: Any = None
    description: Any = None
    settings: Any = None


class CampaignPatch(BaseModel):
    name: Any = None
    description: Any = None
    settings: Any = None


class CampaignContentAttach(BaseModel):
    content_id: str | None = Field(default=None, alias="contentId")
    sequence: StrictInt | None = None
    notes: StrictStr | None = None

    model_config = ConfigDict(populate_by_name=True)


class CampaignContentRef(BaseModel):
    content_id: str | None = Field(default=None, alias="contentId")

    model_config = ConfigDict(populate_by_name=True)


class SessionNoteCreate(BaseModel):
    """Field types are checked by the service so errors keep the API's wording."""

    title: Any = None
    content: Any = None
    session_date: Any = Field(
        default=None, validation_alias=AliasChoices("sessionDate", "session_date")
    )
    campaign_id: Any = Field(
        default=None, validation_alias=AliasChoices("campaignId", "campaign_id")
    )
    linked_content_ids: Any = Field(
        default=None, validation_alias=AliasChoices("linkedContentIds", "linked_content_ids")
    )


class SessionNotePatch(SessionNoteCreate):
    def fields(self) -> dict[str, Any]:
        # Explicit nulls are kept: they clear the campaign or the links
        return {name: getattr(self, name) for name in self.model_fields_set}


# -----------------------------
# Responses
# -----------------------------


class ContentOut(BaseModel):
    id: str
    type: ContentType
    scenario_input: str
    content_data: dict[str, Any]
    is_favorite: bool = False
    tags: list[str] = Field(default_factory=list)
    notes: str = ""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VersionSummaryOut(BaseModel):
    id: str
    version_number: int
    change_summary: str | None = None
    changed_by: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VersionOut(VersionSummaryOut):
    content_id: str
    content_data: dict[str, Any]


class LinkOut(BaseModel):
    id: str
    source_content_id: str
    target_content_id: str
    link_type: LinkType
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LinkEntryOut(BaseModel):
    id: str
    content_id: str = Field(serialization_alias="contentId")
    link_type: LinkType = Field(serialization_alias="linkType")
    created_at: datetime = Field(serialization_alias="createdAt")
    content: ContentOut | None = None

    model_config = ConfigDict(from_attributes=True)


class CampaignOut(BaseModel):
    id: str
    name: str
    description: str = ""
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CampaignEntryOut(BaseModel):
    content_id: str = Field(serialization_alias="contentId")
    sequence: int
    notes: str = ""
    content: dict[str, Any] | None = None

    model_config = ConfigDict(from_attributes=True)


class CampaignContentOut(BaseModel):
    campaign_id: str
    content_id: str
    sequence: int
    notes: str = ""

    model_config = ConfigDict(from_attributes=True)


class SessionNoteOut(BaseModel):
    id: str
    campaign_id: str | None = None
    title: str
    content: str = ""
    session_date: date
    linked_content_ids: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
