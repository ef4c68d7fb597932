import logging
from dataclasses import dataclass, fields
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from fastapi import BackgroundTasks
from dossier.models.audit_log import AuditLog, ActionType, UserType
from dossier.core.logging_utils import mask_sensitive_data, sanitize_log_message

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 512
ERROR_MESSAGE_MAX_LENGTH = 1000


@dataclass
class AuditLogFilter:
    """Optional equality and date-range filters for the audit trail."""
    action_type: Optional[ActionType] = None
    user_type: Optional[UserType] = None
    user_id: Optional[int] = None
    resource_type: Optional[str] = None
    resource_id: Optional[int] = None
    status: Optional[str] = None
    request_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def conditions(self) -> list:
        conditions = [
            getattr(AuditLog, f.name) == getattr(self, f.name)
            for f in fields(self)
            if f.name not in ("start_date", "end_date") and getattr(self, f.name) is not None
        ]
        if self.start_date is not None:
            conditions.append(AuditLog.created_at >= self.start_date)
        if self.end_date is not None:
            conditions.append(AuditLog.created_at <= self.end_date)
        return conditions


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None or len(value) <= limit:
        return value
    return value[:limit]


class AuditService:
    """Writes and queries the audit trail of operator and viewer actions."""

    @staticmethod
    async def log_action(
        db: AsyncSession,
        action_type: ActionType,
        user_type: UserType,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        request_data: Optional[Dict[str, Any]] = None,
        response_data: Optional[Dict[str, Any]] = None,
        status: str = "success",
        error_message: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> AuditLog:
        """
        Write one audit entry and commit it.

        Request and response data pass through mask_sensitive_data first, so
        share tokens keep only their prefix, passwords never land in the trail
        and viewer coordinates are rounded.

        Args:
            db: Database session
            action_type: What happened
            user_type: Who did it (operator, share link viewer, system)
            user_id: Operator ID when known
            resource_type: "operator", "subject" or "share_link"
            resource_id: ID of the resource
            ip_address: Client IP
            user_agent: Client user agent (truncated)
            request_data: Request details worth keeping
            response_data: Response details worth keeping
            status: "success" or "error"
            error_message: Reason, when status is "error"
            request_id: Request ID for correlating with log lines

        Returns:
            Created AuditLog record
        """
        entry = AuditLog(
            action_type=action_type,
            user_type=user_type,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=ip_address,
            user_agent=_truncate(user_agent, USER_AGENT_MAX_LENGTH),
            request_data=mask_sensitive_data(request_data) if request_data else None,
            response_data=mask_sensitive_data(response_data) if response_data else None,
            status=status,
            error_message=_truncate(error_message, ERROR_MESSAGE_MAX_LENGTH),
            request_id=request_id
        )

        db.add(entry)
        try:
            await db.commit()
        except Exception:
            logger.exception(
                sanitize_log_message(
                    "Failed to write audit entry",
                    Action=action_type.value,
                    Actor=user_type.value,
                    RequestID=request_id
                )
            )
            raise
        await db.refresh(entry)

        logger.debug(
            sanitize_log_message(
                f"Audit: {action_type.value}",
                Actor=f"{user_type.value}:{user_id}",
                Resource=f"{resource_type}:{resource_id}",
                Status=status,
                RequestID=request_id
            )
        )
        return entry

    @staticmethod
    async def log_action_background(
        background_tasks: BackgroundTasks,
        db: AsyncSession,
        action_type: ActionType,
        user_type: UserType,
        **kwargs: Any
    ) -> None:
        """Schedule an audit entry to be written after the response is sent."""
        background_tasks.add_task(
            AuditService.log_action,
            db=db,
            action_type=action_type,
            user_type=user_type,
            **kwargs
        )

    @staticmethod
    async def get_audit_logs(
        db: AsyncSession,
        audit_filter: Optional[AuditLogFilter] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[AuditLog], int]:
        """
        One page of the audit trail, newest first, with the total match count.
        """
        conditions = (audit_filter or AuditLogFilter()).conditions()
        where = and_(*conditions) if conditions else None

        count_query = select(func.count(AuditLog.id))
        page_query = select(AuditLog)
        if where is not None:
            count_query = count_query.where(where)
            page_query = page_query.where(where)

        total = (await db.execute(count_query)).scalar_one()
        result = await db.execute(
            page_query
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total
