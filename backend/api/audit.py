"""
Audit trail API endpoint (super-admin only)
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime

from database import get_db
from middleware.rbac import require_super_admin
from models_auth import Actor
from schemas import AuditLogItem, AuditLogResponse
from services.audit_log import audit_service

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=AuditLogResponse)
async def list_audit_logs(
    action: Optional[str] = Query(None, description="Filter by action, e.g. CASE_CREATE"),
    user_id: Optional[str] = Query(None, description="Filter by acting user"),
    resource_type: Optional[str] = Query(None, description="case, task or user"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_super_admin)
):
    """Audit entries, newest first"""
    total, logs = await audit_service.list_logs(
        db,
        action=action,
        user_id=user_id,
        resource_type=resource_type,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return AuditLogResponse(
        total=total,
        skip=skip,
        limit=limit,
        logs=[AuditLogItem.model_validate(log) for log in logs],
    )
