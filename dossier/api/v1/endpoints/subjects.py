from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from dossier.database import get_db
from dossier.api.deps import AuditContext, get_audit_context, require_capability, require_section
from dossier.schemas.subject import (
    SubjectCreateRequest,
    SubjectResponse,
    SubjectDetailResponse,
    LocationCreateRequest,
    LocationResponse,
)
from dossier.services.subject_service import SubjectService
from dossier.core.permissions import can_access_subsection
from dossier.core.exceptions import ResourceNotFoundException
from dossier.models.audit_log import ActionType
from dossier.models.operator import Operator

router = APIRouter()

# Profile tab -> detail list it reveals
SUBSECTION_LISTS = {
    "attributes": "intel",
    "capabilities": "skills",
    "timeline": "interactions",
    "map": "locations",
    "network": "relationships",
    "files": "media",
}


@router.post(
    "",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_section("targets"))]
)
async def create_subject(
    payload: SubjectCreateRequest,
    operator: Operator = Depends(require_capability("createSubjects")),
    audit_context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db)
):
    """Create a profile owned by the caller."""
    subject = await SubjectService.create_subject(db, operator.id, **payload.model_dump())

    await audit_context.log_action(
        action_type=ActionType.SUBJECT_CREATED,
        resource_type="subject",
        resource_id=subject.id
    )
    return subject


@router.get("", response_model=List[SubjectResponse])
async def list_subjects(
    operator: Operator = Depends(require_section("targets")),
    db: AsyncSession = Depends(get_db)
):
    """The caller's non-archived profiles."""
    return await SubjectService.list_subjects(db, operator.id)


@router.get("/{subject_id}", response_model=SubjectDetailResponse)
async def get_subject(
    subject_id: int,
    operator: Operator = Depends(require_section("targets")),
    db: AsyncSession = Depends(get_db)
):
    """One owned profile; detail lists behind tabs the caller may not open are empty."""
    subject = await SubjectService.get_owned_subject(db, subject_id, operator.id)
    if subject is None:
        raise ResourceNotFoundException(detail="Subject not found")

    details = await SubjectService.get_detail_lists(db, subject.id)
    response = SubjectResponse.model_validate(subject).model_dump()
    for section_id, list_name in SUBSECTION_LISTS.items():
        response[list_name] = details[list_name] if can_access_subsection(operator, section_id) else []
    return response


@router.delete("/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
async def archive_subject(
    subject_id: int,
    operator: Operator = Depends(require_capability("deleteSubjects")),
    audit_context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db)
):
    """Archive a profile. Its share links stop being listable or revocable."""
    archived = await SubjectService.archive_subject(db, subject_id, operator.id)
    if not archived:
        raise ResourceNotFoundException(detail="Subject not found")

    await audit_context.log_action(
        action_type=ActionType.SUBJECT_ARCHIVED,
        resource_type="subject",
        resource_id=subject_id
    )


@router.post("/{subject_id}/locations", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
async def add_location(
    subject_id: int,
    payload: LocationCreateRequest,
    operator: Operator = Depends(require_capability("manageLocations")),
    audit_context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db)
):
    """Pin a location on an owned profile."""
    subject = await SubjectService.get_owned_subject(db, subject_id, operator.id)
    if subject is None:
        raise ResourceNotFoundException(detail="Subject not found")

    location = await SubjectService.add_location(db, subject_id=subject.id, **payload.model_dump())

    await audit_context.log_action(
        action_type=ActionType.LOCATION_CREATED,
        resource_type="subject",
        resource_id=subject.id,
        request_data={"location_id": location.id, "lat": location.lat, "lng": location.lng}
    )
    return location
