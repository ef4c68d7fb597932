import logging
from dataclasses import asdict
from typing import List
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from dossier.database import get_db
from dossier.api.deps import AuditContext, get_audit_context, get_current_operator, require_capability
from dossier.schemas.share_link import (
    ShareLinkCreateRequest,
    ShareLinkCreateResponse,
    ShareLinkSummaryResponse,
    ShareLinkRevokeResponse,
)
from dossier.services.share_link_service import ShareLinkService
from dossier.core.exceptions import PermissionDeniedException, ResourceNotFoundException
from dossier.core.logging_utils import mask_share_token
from dossier.models.audit_log import ActionType
from dossier.models.operator import Operator
from dossier.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


def build_share_url(request: Request, token: str) -> str:
    """Public viewer URL; PUBLIC_BASE_URL wins over the request's own origin."""
    base = settings.PUBLIC_BASE_URL or str(request.base_url)
    return f"{base.rstrip('/')}{settings.API_V1_STR}/share/{token}"


@router.post("", response_model=ShareLinkCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_share_link(
    request: Request,
    payload: ShareLinkCreateRequest,
    operator: Operator = Depends(require_capability("manageShares")),
    audit_context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Issue a share link for a profile the caller owns.

    The countdown does not start until the link is first opened.
    """
    link = await ShareLinkService.create_link(
        db=db,
        operator_id=operator.id,
        subject_id=payload.subject_id,
        duration_minutes=payload.duration_minutes,
        require_location=payload.require_location,
        allowed_tabs=payload.allowed_tabs
    )
    if link is None:
        raise PermissionDeniedException(detail="Unauthorized")

    await audit_context.log_action(
        action_type=ActionType.SHARE_LINK_CREATED,
        resource_type="share_link",
        resource_id=link.id,
        request_data={
            "subject_id": link.subject_id,
            "duration_seconds": link.duration_seconds,
            "require_location": link.require_location,
            "allowed_tabs": link.allowed_tabs,
            "token": link.token,
        }
    )

    return ShareLinkCreateResponse(
        url=build_share_url(request, link.token),
        token=link.token,
        duration_seconds=link.duration_seconds,
        require_location=link.require_location,
        allowed_tabs=link.allowed_tabs,
        expires_in_seconds=link.duration_seconds
    )


@router.get("", response_model=List[ShareLinkSummaryResponse])
async def list_share_links(
    request: Request,
    subject_id: int = Query(..., alias="subjectId"),
    operator: Operator = Depends(get_current_operator),
    db: AsyncSession = Depends(get_db)
):
    """
    Share links of a profile, newest first.

    Returns an empty list for a profile the caller does not own.
    """
    summaries = await ShareLinkService.list_links(db, operator.id, subject_id)
    return [
        ShareLinkSummaryResponse(url=build_share_url(request, summary.token), **asdict(summary))
        for summary in summaries
    ]


@router.delete("", response_model=ShareLinkRevokeResponse)
async def revoke_share_link(
    token: str = Query(..., min_length=1),
    operator: Operator = Depends(require_capability("manageShares")),
    audit_context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db)
):
    """Revoke a share link. Revoking an already revoked link succeeds again."""
    revoked = await ShareLinkService.revoke(db, operator.id, token)
    if not revoked:
        logger.info(f"Revoke matched no link: token={mask_share_token(token)}, operator_id={operator.id}")
        raise ResourceNotFoundException(detail="Share link not found")

    await audit_context.log_action(
        action_type=ActionType.SHARE_LINK_REVOKED,
        resource_type="share_link",
        request_data={"token": token}
    )
    return ShareLinkRevokeResponse(success=True)
