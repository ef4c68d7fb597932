import logging
import uuid
from typing import Optional, Dict, Any
from fastapi import Depends, Request, BackgroundTasks
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from dossier.database import get_db
from dossier.models.operator import Operator
from dossier.models.audit_log import ActionType, UserType
from dossier.core.exceptions import AuthenticationException, PermissionDeniedException
from dossier.core.permissions import can_access_section, can_perform
from dossier.core.logging_utils import get_request_id, sanitize_log_message
from dossier.services.operator_service import OperatorService
from dossier.services.audit_service import AuditService

logger = logging.getLogger(__name__)

# Missing or non-Bearer headers resolve to None; rejection is decided below
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_operator_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> Optional[Operator]:
    """
    Get current operator from the bearer token (optional).
    Returns None if not authenticated or the token is not acceptable.
    """
    if not credentials:
        return None
    return await OperatorService.authenticate_token(db, credentials.credentials)


async def get_current_operator(
    operator: Optional[Operator] = Depends(get_current_operator_optional)
) -> Operator:
    """
    Get current operator from the bearer token.
    Dependency for endpoints requiring operator authentication.

    Raises:
        AuthenticationException: 401 for any missing, invalid, expired or
            revoked token, or a disabled/unknown operator
    """
    if operator is None:
        raise AuthenticationException()
    return operator


async def _deny(
    request: Request,
    db: AsyncSession,
    operator: Operator,
    requirement: str
) -> None:
    """Record a permission denial in the log and the audit trail, then raise 403."""
    request_id = get_request_id(request)
    logger.warning(
        sanitize_log_message(
            "PERMISSION_DENIED",
            operator_id=operator.id,
            requirement=requirement,
            path=request.url.path,
            RequestID=request_id
        )
    )
    await AuditService.log_action(
        db=db,
        action_type=ActionType.PERMISSION_DENIED,
        user_type=UserType.OPERATOR,
        user_id=operator.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        request_data={"requirement": requirement, "path": request.url.path},
        status="error",
        error_message=f"Missing {requirement}",
        request_id=request_id
    )
    raise PermissionDeniedException()


def require_capability(capability: str):
    """
    Dependency factory: the current operator must hold a capability.

    Usage:
        @router.post("/", dependencies=[Depends(require_capability("manageShares"))])
    """
    async def checker(
        request: Request,
        operator: Operator = Depends(get_current_operator),
        db: AsyncSession = Depends(get_db)
    ) -> Operator:
        if not can_perform(operator, capability):
            await _deny(request, db, operator, f"capability:{capability}")
        return operator

    return checker


def require_section(section_id: str):
    """Dependency factory: the current operator must be allowed into a top-level section."""
    async def checker(
        request: Request,
        operator: Operator = Depends(get_current_operator),
        db: AsyncSession = Depends(get_db)
    ) -> Operator:
        if not can_access_section(operator, section_id):
            await _deny(request, db, operator, f"section:{section_id}")
        return operator

    return checker


async def require_master(
    request: Request,
    operator: Operator = Depends(get_current_operator),
    db: AsyncSession = Depends(get_db)
) -> Operator:
    """The current operator must be a master operator."""
    if not operator.is_master:
        await _deny(request, db, operator, "master")
    return operator


class AuditContext:
    """Request-scoped audit logging context with actor detection and request ID."""

    def __init__(
        self,
        request: Request,
        background_tasks: BackgroundTasks,
        db: AsyncSession,
        user_id: Optional[int] = None,
        user_type: Optional[UserType] = None
    ):
        if not hasattr(request.state, "request_id"):
            request.state.request_id = str(uuid.uuid4())

        self.request_id = request.state.request_id
        self.request = request
        self.background_tasks = background_tasks
        self.db = db
        self.user_id = user_id
        self.user_type = user_type or UserType.SYSTEM
        self.ip_address = request.client.host if request.client else None
        self.user_agent = request.headers.get("user-agent")

    async def log_action(
        self,
        action_type: ActionType,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        request_data: Optional[Dict[str, Any]] = None,
        response_data: Optional[Dict[str, Any]] = None,
        status: str = "success",
        error_message: Optional[str] = None,
        user_id: Optional[int] = None,
        immediate: bool = False
    ) -> None:
        """
        Audit an action with the request's actor, IP and request ID.

        Entries are written after the response by default. Pass immediate=True
        when the handler is about to raise, since background tasks do not run
        for error responses. user_id attributes the entry to an operator other
        than the detected one (the login endpoint uses it).
        """
        entry = dict(
            db=self.db,
            action_type=action_type,
            user_type=UserType.OPERATOR if user_id else self.user_type,
            user_id=user_id or self.user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            request_data=request_data,
            response_data=response_data,
            status=status,
            error_message=error_message,
            request_id=self.request_id
        )
        if immediate:
            await AuditService.log_action(**entry)
        else:
            await AuditService.log_action_background(self.background_tasks, **entry)


async def get_audit_context(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    operator: Optional[Operator] = Depends(get_current_operator_optional)
) -> AuditContext:
    """
    Request-scoped audit context.

    Authenticated requests are attributed to the operator; unauthenticated
    ones (share link viewers) to VIEWER.
    """
    if operator is not None:
        return AuditContext(request, background_tasks, db, user_id=operator.id, user_type=UserType.OPERATOR)
    return AuditContext(request, background_tasks, db, user_type=UserType.VIEWER)
