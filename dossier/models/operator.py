from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from dossier.database import Base


class Operator(Base):
    """Operator model - authenticated internal users who manage profiles and share links."""

    __tablename__ = "operators"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    is_master = Column(Boolean, default=False, nullable=False, index=True)
    is_disabled = Column(Boolean, default=False, nullable=False)
    token_version = Column(Integer, default=0, nullable=False)  # Bumped to force-logout every issued token
    allowed_sections = Column(Text, nullable=True)  # Raw JSON policy blob, normalized on read
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    subjects = relationship("Subject", back_populates="operator")
