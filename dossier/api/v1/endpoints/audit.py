from typing import Optional, Literal
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from dossier.database import get_db
from dossier.api.deps import require_master
from dossier.schemas.audit import AuditLogResponse, AuditLogListResponse
from dossier.services.audit_service import AuditService, AuditLogFilter
from dossier.models.audit_log import ActionType, UserType
from dossier.models.operator import Operator

router = APIRouter()

ResourceType = Literal["operator", "subject", "share_link"]
AuditStatus = Literal["success", "error"]


def audit_log_filter(
    action_type: Optional[ActionType] = Query(None),
    user_type: Optional[UserType] = Query(None),
    user_id: Optional[int] = Query(None),
    resource_type: Optional[ResourceType] = Query(None),
    resource_id: Optional[int] = Query(None),
    status: Optional[AuditStatus] = Query(None),
    request_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
) -> AuditLogFilter:
    return AuditLogFilter(
        action_type=action_type,
        user_type=user_type,
        user_id=user_id,
        resource_type=resource_type,
        resource_id=resource_id,
        status=status,
        request_id=request_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("", response_model=AuditLogListResponse)
async def get_audit_logs(
    audit_filter: AuditLogFilter = Depends(audit_log_filter),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    master: Operator = Depends(require_master),
    db: AsyncSession = Depends(get_db)
):
    """
    Browse the audit trail: logins, operator changes, share link
    creation, access, expiry and revocation, and permission denials.

    Master only.
    """
    logs, total = await AuditService.get_audit_logs(db, audit_filter, limit=limit, offset=offset)

    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        limit=limit,
        offset=offset
    )
