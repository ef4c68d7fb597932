"""Pydantic schemas for request/response contracts."""
from dossier.schemas.auth import (
    LoginRequest,
    LoginResponse,
    CurrentOperatorResponse,
)
from dossier.schemas.operator import (
    OperatorCreateRequest,
    OperatorUpdateRequest,
    OperatorResponse,
)
from dossier.schemas.subject import (
    SubjectCreateRequest,
    SubjectResponse,
    SubjectDetailResponse,
    LocationCreateRequest,
    LocationResponse,
)
from dossier.schemas.share_link import (
    ShareLinkCreateRequest,
    ShareLinkCreateResponse,
    ShareLinkSummaryResponse,
    ShareLinkRevokeResponse,
    SharedSubjectResponse,
    LocationRequiredResponse,
)
from dossier.schemas.audit import (
    AuditLogResponse,
    AuditLogListResponse,
)

__all__ = [
    "LoginRequest",
    "LoginResponse",
    "CurrentOperatorResponse",
    "OperatorCreateRequest",
    "OperatorUpdateRequest",
    "OperatorResponse",
    "SubjectCreateRequest",
    "SubjectResponse",
    "SubjectDetailResponse",
    "LocationCreateRequest",
    "LocationResponse",
    "ShareLinkCreateRequest",
    "ShareLinkCreateResponse",
    "ShareLinkSummaryResponse",
    "ShareLinkRevokeResponse",
    "SharedSubjectResponse",
    "LocationRequiredResponse",
    "AuditLogResponse",
    "AuditLogListResponse",
]
