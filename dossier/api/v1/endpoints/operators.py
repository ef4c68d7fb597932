from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from dossier.database import get_db
from dossier.api.deps import AuditContext, get_audit_context, require_master
from dossier.schemas.operator import OperatorCreateRequest, OperatorUpdateRequest, OperatorResponse
from dossier.services.operator_service import OperatorService
from dossier.models.audit_log import ActionType
from dossier.models.operator import Operator

router = APIRouter()


@router.get("", response_model=List[OperatorResponse])
async def list_operators(
    master: Operator = Depends(require_master),
    db: AsyncSession = Depends(get_db)
):
    """List every operator with its normalized policy. Master only."""
    operators = await OperatorService.list_operators(db)
    return [OperatorResponse.from_operator(operator) for operator in operators]


@router.post("", response_model=OperatorResponse, status_code=status.HTTP_201_CREATED)
async def create_operator(
    payload: OperatorCreateRequest,
    master: Operator = Depends(require_master),
    audit_context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db)
):
    """Create an operator. Duplicate email gives 409."""
    operator = await OperatorService.create_operator(
        db=db,
        email=payload.email,
        password=payload.password,
        name=payload.name,
        allowed_sections=payload.allowed_sections,
        is_master=payload.is_master
    )

    await audit_context.log_action(
        action_type=ActionType.OPERATOR_CREATED,
        resource_type="operator",
        resource_id=operator.id,
        request_data={"email": operator.email, "is_master": operator.is_master}
    )
    return OperatorResponse.from_operator(operator)


@router.patch("/{operator_id}", response_model=OperatorResponse)
async def update_operator(
    operator_id: int,
    payload: OperatorUpdateRequest,
    master: Operator = Depends(require_master),
    audit_context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Update an operator's policy, status, password or role.

    force_logout invalidates every token issued to the operator so far.
    """
    operator = await OperatorService.update_operator(
        db=db,
        acting_operator=master,
        operator_id=operator_id,
        allowed_sections=payload.allowed_sections,
        is_disabled=payload.is_disabled,
        password=payload.password,
        force_logout=payload.force_logout,
        is_master=payload.is_master
    )

    await audit_context.log_action(
        action_type=ActionType.OPERATOR_UPDATED,
        resource_type="operator",
        resource_id=operator.id,
        request_data=payload.model_dump(exclude_unset=True)
    )
    return OperatorResponse.from_operator(operator)
