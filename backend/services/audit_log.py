"""
Audit Logging Service for the GBV case tracker
Records who did what to which case, task or account
"""
from typing import Dict, List, Optional, Any, Tuple
from datetime import datetime
from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import Request
import enum
import logging
import uuid

from models import AuditLog
from models_auth import Actor

logger = logging.getLogger(__name__)


class AuditAction(str, enum.Enum):
    login_success = "LOGIN_SUCCESS"
    login_failed = "LOGIN_FAILED"
    account_locked = "ACCOUNT_LOCKED"
    case_view = "CASE_VIEW"
    case_create = "CASE_CREATE"
    case_update = "CASE_UPDATE"
    case_delete = "CASE_DELETE"
    task_create = "TASK_CREATE"
    task_update = "TASK_UPDATE"
    task_delete = "TASK_DELETE"
    user_create = "USER_CREATE"
    user_update = "USER_UPDATE"
    user_delete = "USER_DELETE"
    role_change = "ROLE_CHANGE"
    password_change = "PASSWORD_CHANGE"
    unauthorized_access = "UNAUTHORIZED_ACCESS"


def _client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class AuditLogService:
    """Service for writing and retrieving audit events"""

    def build_entry(
        self,
        action: AuditAction,
        actor: Optional[Actor] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        success: bool = True,
        request: Optional[Request] = None,
        user_id: Optional[str] = None,
    ) -> AuditLog:
        """
        Build an audit row without touching the session

        Args:
            action: What happened
            actor: Who did it (None for anonymous events such as a failed login)
            resource_type: 'case', 'task' or 'user'
            resource_id: Identifier of the touched record
            details: Non-identifying extra context (never victim data)
            success: Whether the action went through
            request: Incoming request, for IP and user agent
            user_id: Explicit user id when there is no actor yet

        Returns:
            Unsaved AuditLog instance
        """
        return AuditLog(
            audit_id=uuid.uuid4(),
            action=AuditAction(action).value,
            user_id=actor.id if actor else user_id,
            user_name=actor.name if actor else None,
            user_role=actor.role.value if actor and actor.role else None,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            ip_address=_client_ip(request),
            user_agent=(request.headers.get("User-Agent") or "")[:500] if request else None,
            details=details or {},
            success=success,
            created_at=datetime.utcnow(),
        )

    def stage(self, db: AsyncSession, action: AuditAction, **kwargs) -> AuditLog:
        """Add an audit row to the caller's transaction; it commits with the mutation"""
        entry = self.build_entry(action, **kwargs)
        db.add(entry)
        return entry

    async def record(self, db: AsyncSession, action: AuditAction, **kwargs) -> Optional[uuid.UUID]:
        """
        Write a standalone audit row in its own commit

        Used for events with no accompanying mutation (failed logins,
        lockouts). Failures are logged and swallowed so that auditing
        never turns a denial into a 500.
        """
        try:
            entry = self.stage(db, action, **kwargs)
            await db.commit()
            return entry.audit_id
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error writing audit event {action}: {e}")
            return None

    async def list_logs(
        self,
        db: AsyncSession,
        action: Optional[str] = None,
        user_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[int, List[AuditLog]]:
        """
        Filtered audit trail, newest first

        Returns:
            (total matching rows, requested page)
        """
        conditions = []
        if action:
            conditions.append(AuditLog.action == action)
        if user_id:
            conditions.append(AuditLog.user_id == user_id)
        if resource_type:
            conditions.append(AuditLog.resource_type == resource_type)
        if start_date:
            conditions.append(AuditLog.created_at >= start_date)
        if end_date:
            conditions.append(AuditLog.created_at <= end_date)

        count_query = select(func.count()).select_from(AuditLog)
        query = select(AuditLog).order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
        if conditions:
            count_query = count_query.where(and_(*conditions))
            query = query.where(and_(*conditions))

        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(query)
        return total, list(result.scalars().all())


audit_service = AuditLogService()
