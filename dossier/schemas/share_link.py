from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from dossier.services.share_link_service import DISCLOSURE_TABS, ShareLinkStatus
from dossier.schemas.subject import (
    InteractionResponse,
    LocationResponse,
    MediaResponse,
    IntelResponse,
    SkillResponse,
    RelationshipResponse,
)


class ShareLinkCreateRequest(BaseModel):
    """Request schema for creating a share link (camelCase or snake_case)."""
    model_config = ConfigDict(populate_by_name=True)

    subject_id: int = Field(alias="subjectId")
    duration_minutes: Optional[int] = Field(default=None, alias="durationMinutes")
    require_location: bool = Field(default=False, alias="requireLocation")
    allowed_tabs: Optional[List[str]] = Field(default=None, alias="allowedTabs")

    @field_validator("allowed_tabs")
    @classmethod
    def validate_allowed_tabs(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        unknown = [tab for tab in v if tab not in DISCLOSURE_TABS]
        if unknown:
            raise ValueError(f"Unknown tabs: {', '.join(unknown)}. Allowed: {', '.join(DISCLOSURE_TABS)}")
        deduped: List[str] = []
        for tab in v:
            if tab not in deduped:
                deduped.append(tab)
        return deduped


class ShareLinkCreateResponse(BaseModel):
    """Response schema for share link creation."""
    url: str
    token: str
    duration_seconds: int
    require_location: bool
    allowed_tabs: Optional[List[str]] = None
    expires_in_seconds: int


class ShareLinkSummaryResponse(BaseModel):
    """One entry of a profile's share link listing."""
    token: str
    url: str
    status: ShareLinkStatus
    is_active: bool
    views: int
    duration_seconds: int
    remaining_seconds: int
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    require_location: bool
    allowed_tabs: Optional[List[str]] = None
    created_at: Optional[datetime] = None


class ShareLinkRevokeResponse(BaseModel):
    success: bool = True


class ShareTeaser(BaseModel):
    """What a viewer sees before granting location."""
    full_name: Optional[str] = None
    avatar_path: Optional[str] = None


class LocationRequiredResponse(BaseModel):
    error: str = "LOCATION_REQUIRED"
    detail: str = "Location required"
    partial: ShareTeaser


class ShareMeta(BaseModel):
    remaining_seconds: int
    started_at: datetime
    expires_at: datetime
    views: int
    allowed_tabs: List[str]


class SharedSubjectResponse(BaseModel):
    """
    Filtered profile disclosed through a share link.

    Header fields are always present. Profile fields are null and lists are
    empty when their tab is not allowed.
    """
    id: int
    full_name: str
    alias: Optional[str] = None
    occupation: Optional[str] = None
    nationality: Optional[str] = None
    threat_level: Optional[str] = None
    avatar_path: Optional[str] = None
    status: Optional[str] = None

    dob: Optional[str] = None
    age: Optional[int] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    blood_type: Optional[str] = None
    modus_operandi: Optional[str] = None
    identifying_marks: Optional[str] = None

    interactions: List[InteractionResponse]
    locations: List[LocationResponse]
    media: List[MediaResponse]
    intel: List[IntelResponse]
    skills: List[SkillResponse]
    relationships: List[RelationshipResponse]

    meta: ShareMeta
