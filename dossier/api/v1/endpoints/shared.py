import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from dossier.database import get_db
from dossier.api.deps import AuditContext, get_audit_context
from dossier.schemas.share_link import SharedSubjectResponse, LocationRequiredResponse
from dossier.services.share_link_service import ShareLinkService, ShareOutcome
from dossier.core.exceptions import (
    LocationRequiredException,
    ResourceNotFoundException,
    ShareLinkGoneException,
)
from dossier.core.logging_utils import mask_share_token
from dossier.middleware.rate_limit import rate_limit_share_access
from dossier.models.audit_log import ActionType

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/{token}",
    response_model=SharedSubjectResponse,
    responses={428: {"model": LocationRequiredResponse}}
)
@rate_limit_share_access()
async def get_shared_subject(
    request: Request,
    token: str,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    audit_context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Open a share link (no authentication).

    - 404: unknown token
    - 410: link revoked or its window has elapsed
    - 428: location required; the body carries the name/avatar teaser
    """
    resolution = await ShareLinkService.resolve(db, token, lat=lat, lng=lng)

    if resolution.outcome == ShareOutcome.NOT_FOUND:
        raise ResourceNotFoundException(detail="Link invalid")

    if resolution.outcome == ShareOutcome.INACTIVE:
        raise ShareLinkGoneException(detail="Link revoked or expired")

    if resolution.outcome == ShareOutcome.EXPIRED:
        await audit_context.log_action(
            action_type=ActionType.SHARE_LINK_EXPIRED,
            resource_type="share_link",
            resource_id=resolution.link.id,
            immediate=True
        )
        raise ShareLinkGoneException(detail="Link expired")

    if resolution.outcome == ShareOutcome.LOCATION_REQUIRED:
        logger.info(f"Share link awaiting viewer location: token={mask_share_token(token)}")
        raise LocationRequiredException(partial=resolution.partial)

    link = resolution.link
    if resolution.sighting_recorded:
        await audit_context.log_action(
            action_type=ActionType.SHARE_LOCATION_RECORDED,
            resource_type="subject",
            resource_id=link.subject_id,
            request_data={"lat": lat, "lng": lng, "token": token}
        )
    await audit_context.log_action(
        action_type=ActionType.SHARE_LINK_ACCESSED,
        resource_type="share_link",
        resource_id=link.id,
        response_data={
            "views": resolution.payload["meta"]["views"],
            "remaining_seconds": resolution.payload["meta"]["remaining_seconds"],
        }
    )

    return resolution.payload
