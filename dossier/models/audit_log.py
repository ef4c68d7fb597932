from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, JSON
from sqlalchemy.sql import func
import enum
from dossier.database import Base


class ActionType(str, enum.Enum):
    """Action type enumeration for audit logging."""
    OPERATOR_LOGIN = "operator_login"
    OPERATOR_BOOTSTRAPPED = "operator_bootstrapped"
    OPERATOR_CREATED = "operator_created"
    OPERATOR_UPDATED = "operator_updated"
    SUBJECT_CREATED = "subject_created"
    SUBJECT_ARCHIVED = "subject_archived"
    LOCATION_CREATED = "location_created"
    SHARE_LINK_CREATED = "share_link_created"
    SHARE_LINK_ACCESSED = "share_link_accessed"
    SHARE_LINK_EXPIRED = "share_link_expired"
    SHARE_LINK_REVOKED = "share_link_revoked"
    SHARE_LOCATION_RECORDED = "share_location_recorded"
    PERMISSION_DENIED = "permission_denied"


class UserType(str, enum.Enum):
    """User type enumeration for audit logging."""
    OPERATOR = "operator"
    VIEWER = "viewer"  # Unauthenticated share link holder
    SYSTEM = "system"


class AuditLog(Base):
    """Audit log model - comprehensive audit trail for all actions."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action_type = Column(SQLEnum(ActionType), nullable=False, index=True)
    user_type = Column(SQLEnum(UserType), nullable=False, index=True)
    user_id = Column(Integer, nullable=True, index=True)  # operator_id when known
    resource_type = Column(String, nullable=True, index=True)  # e.g., "subject", "share_link", "operator"
    resource_id = Column(Integer, nullable=True, index=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    request_data = Column(JSON, nullable=True)
    response_data = Column(JSON, nullable=True)
    status = Column(String, nullable=False, index=True)  # "success" or "error"
    error_message = Column(String, nullable=True)
    request_id = Column(String, nullable=True, index=True)  # UUID for request tracing
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
