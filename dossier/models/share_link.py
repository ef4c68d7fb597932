from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from dossier.database import Base


class ShareLink(Base):
    """Share link model - time-boxed, revocable capability token bound to one subject."""

    __tablename__ = "share_links"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    token = Column(String, unique=True, nullable=False, index=True)  # 32 hex chars
    duration_seconds = Column(Integer, nullable=False)  # Fixed at creation
    started_at = Column(DateTime(timezone=True), nullable=True)  # Set once, on first successful access
    is_active = Column(Boolean, default=True, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    require_location = Column(Boolean, default=False, nullable=False)
    allowed_tabs = Column(JSON, nullable=True)  # None = every tab
    created_by = Column(Integer, ForeignKey("operators.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    subject = relationship("Subject", back_populates="share_links")
