from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from dossier.database import get_db
from dossier.api.deps import AuditContext, get_audit_context, get_current_operator
from dossier.schemas.auth import LoginRequest, LoginResponse, CurrentOperatorResponse
from dossier.services.operator_service import OperatorService
from dossier.core.security import create_access_token
from dossier.core.permissions import describe_policy
from dossier.core.exceptions import ServiceMisconfiguredException
from dossier.middleware.rate_limit import rate_limit_auth
from dossier.models.audit_log import ActionType
from dossier.models.operator import Operator
from dossier.config import settings

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@rate_limit_auth()
async def login(
    request: Request,
    credentials: LoginRequest,
    audit_context: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Exchange email and password for a signed bearer token.

    The first login against an empty operator table creates a master operator.
    """
    if not settings.SECRET_KEY:
        raise ServiceMisconfiguredException()

    operator, bootstrapped = await OperatorService.login(db, credentials.email, credentials.password)
    await OperatorService.record_login(db, operator)

    token = create_access_token(operator.id, operator.email, operator.token_version)

    if bootstrapped:
        await audit_context.log_action(
            action_type=ActionType.OPERATOR_BOOTSTRAPPED,
            resource_type="operator",
            resource_id=operator.id,
            user_id=operator.id
        )
    await audit_context.log_action(
        action_type=ActionType.OPERATOR_LOGIN,
        resource_type="operator",
        resource_id=operator.id,
        user_id=operator.id
    )

    return LoginResponse(
        token=token,
        token_type="bearer",
        operator_id=operator.id,
        email=operator.email,
        is_master=operator.is_master
    )


@router.get("/me", response_model=CurrentOperatorResponse)
async def get_me(
    current_operator: Operator = Depends(get_current_operator)
):
    """Current operator and the sections and capabilities it may use."""
    return CurrentOperatorResponse(
        id=current_operator.id,
        email=current_operator.email,
        name=current_operator.name,
        is_master=current_operator.is_master,
        allowed_sections=describe_policy(current_operator)
    )
