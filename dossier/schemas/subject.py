from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class SubjectCreateRequest(BaseModel):
    """Request schema for creating a profile."""
    full_name: str = Field(min_length=1)
    alias: Optional[str] = None
    occupation: Optional[str] = None
    nationality: Optional[str] = None
    threat_level: str = "Low"
    avatar_path: Optional[str] = None
    status: str = "Active"
    dob: Optional[str] = None
    age: Optional[int] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    blood_type: Optional[str] = None
    modus_operandi: Optional[str] = None
    identifying_marks: Optional[str] = None
    notes: Optional[str] = None


class LocationCreateRequest(BaseModel):
    """Request schema for adding a location to a profile."""
    name: str = Field(min_length=1)
    address: Optional[str] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    type: str = "pin"
    notes: Optional[str] = None


class InteractionResponse(BaseModel):
    id: int
    date: Optional[str] = None
    type: Optional[str] = None
    transcript: Optional[str] = None
    conclusion: Optional[str] = None
    evidence_url: Optional[str] = None

    class Config:
        from_attributes = True


class LocationResponse(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    type: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MediaResponse(BaseModel):
    id: int
    object_key: Optional[str] = None
    content_type: Optional[str] = None
    description: Optional[str] = None
    media_type: str
    external_url: Optional[str] = None

    class Config:
        from_attributes = True


class IntelResponse(BaseModel):
    id: int
    category: Optional[str] = None
    label: str
    value: Optional[str] = None
    analysis: Optional[str] = None
    confidence: int
    source: Optional[str] = None

    class Config:
        from_attributes = True


class SkillResponse(BaseModel):
    id: int
    skill_name: str
    score: int
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class RelationshipResponse(BaseModel):
    id: int
    subject_a_id: int
    subject_b_id: Optional[int] = None
    relationship_type: Optional[str] = None
    notes: Optional[str] = None
    target_name: Optional[str] = None
    target_avatar: Optional[str] = None
    target_role: Optional[str] = None


class SubjectResponse(BaseModel):
    """Response schema for a profile."""
    id: int
    full_name: str
    alias: Optional[str] = None
    occupation: Optional[str] = None
    nationality: Optional[str] = None
    threat_level: str
    avatar_path: Optional[str] = None
    status: str
    dob: Optional[str] = None
    age: Optional[int] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    blood_type: Optional[str] = None
    modus_operandi: Optional[str] = None
    identifying_marks: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubjectDetailResponse(SubjectResponse):
    """Profile with detail lists; lists hidden by the operator's policy are empty."""
    interactions: List[InteractionResponse] = []
    locations: List[LocationResponse] = []
    media: List[MediaResponse] = []
    intel: List[IntelResponse] = []
    skills: List[SkillResponse] = []
    relationships: List[RelationshipResponse] = []
