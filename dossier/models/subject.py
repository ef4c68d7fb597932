from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from dossier.database import Base


class Subject(Base):
    """Subject model - a profile (dossier) owned by one operator."""

    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    operator_id = Column(Integer, ForeignKey("operators.id"), nullable=False, index=True)

    # Header fields (always disclosed through share links)
    full_name = Column(String, nullable=False)
    alias = Column(String, nullable=True)
    occupation = Column(String, nullable=True)
    nationality = Column(String, nullable=True)
    threat_level = Column(String, default="Low", nullable=False)
    avatar_path = Column(String, nullable=True)
    status = Column(String, default="Active", nullable=False)

    # Profile attributes
    dob = Column(String, nullable=True)
    age = Column(Integer, nullable=True)
    height = Column(String, nullable=True)
    weight = Column(String, nullable=True)
    blood_type = Column(String, nullable=True)
    modus_operandi = Column(Text, nullable=True)
    identifying_marks = Column(Text, nullable=True)

    # Operator-only
    notes = Column(Text, nullable=True)
    is_archived = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    operator = relationship("Operator", back_populates="subjects")
    share_links = relationship("ShareLink", back_populates="subject", cascade="all, delete-orphan")


class SubjectInteraction(Base):
    """Interaction history entry (History tab)."""

    __tablename__ = "subject_interactions"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    date = Column(String, nullable=True)
    type = Column(String, nullable=True)
    transcript = Column(Text, nullable=True)
    conclusion = Column(Text, nullable=True)
    evidence_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SubjectLocation(Base):
    """Known location or viewer sighting (Map tab)."""

    __tablename__ = "subject_locations"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    type = Column(String, default="pin", nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SubjectMedia(Base):
    """Media metadata (Files tab). Bytes live in the object store under object_key."""

    __tablename__ = "subject_media"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    object_key = Column(String, nullable=True)
    content_type = Column(String, nullable=True)
    description = Column(String, nullable=True)
    media_type = Column(String, default="file", nullable=False)
    external_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SubjectIntel(Base):
    """Intel attribute (Intel tab)."""

    __tablename__ = "subject_intel"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    category = Column(String, nullable=True)
    label = Column(String, nullable=False)
    value = Column(Text, nullable=True)
    analysis = Column(Text, nullable=True)
    confidence = Column(Integer, default=100, nullable=False)
    source = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SubjectSkill(Base):
    """Capability rating (Capabilities tab)."""

    __tablename__ = "subject_skills"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    skill_name = Column(String, nullable=False)
    score = Column(Integer, default=50, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SubjectRelationship(Base):
    """Link between two subjects, or to an off-system contact via custom_* (Network tab)."""

    __tablename__ = "subject_relationships"

    id = Column(Integer, primary_key=True, index=True)
    subject_a_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    subject_b_id = Column(Integer, ForeignKey("subjects.id"), nullable=True, index=True)
    relationship_type = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    custom_name = Column(String, nullable=True)
    custom_avatar = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
