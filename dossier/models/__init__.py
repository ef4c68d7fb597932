"""Database models."""
from dossier.models.operator import Operator
from dossier.models.subject import (
    Subject,
    SubjectInteraction,
    SubjectLocation,
    SubjectMedia,
    SubjectIntel,
    SubjectSkill,
    SubjectRelationship,
)
from dossier.models.share_link import ShareLink
from dossier.models.audit_log import AuditLog, ActionType, UserType

__all__ = [
    "Operator",
    "Subject",
    "SubjectInteraction",
    "SubjectLocation",
    "SubjectMedia",
    "SubjectIntel",
    "SubjectSkill",
    "SubjectRelationship",
    "ShareLink",
    "AuditLog",
    "ActionType",
    "UserType",
]
