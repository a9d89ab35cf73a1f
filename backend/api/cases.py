"""
Case API endpoints
Registration, listing, editing and status transitions of GBV cases
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from database import get_db
from middleware.rbac import get_current_actor
from models_auth import Actor
from schemas import CaseCreate, CaseUpdate, CaseResponse, MessageResponse
from services import case_service
from services.audit_log import AuditAction, audit_service

router = APIRouter(prefix="/cases", tags=["cases"])


@router.get("", response_model=List[CaseResponse])
async def list_cases(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Cases visible to the caller, newest submission first

    - agent: cases they registered
    - admin: cases of their region
    - super-admin: every case
    """
    scoped = await case_service.list_cases(db, actor)
    return list(scoped)


@router.post("", response_model=CaseResponse, status_code=201)
async def create_case(
    case: CaseCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Register a case; it starts 'pending' unless an admin sets the status"""
    return await case_service.create_case(db, actor, case, request)


@router.get("/{case_id}", response_model=CaseResponse)
async def get_case(
    case_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Fetch one case; every successful read is audited"""
    case = await case_service.get_case(db, actor, case_id)
    await audit_service.record(
        db, AuditAction.case_view, actor=actor,
        resource_type="case", resource_id=case.case_id, request=request,
    )
    return case


@router.patch("/{case_id}", response_model=CaseResponse)
async def update_case(
    case_id: str,
    changes: CaseUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Edit case fields and/or move its status

    Illegal status moves answer 409 with the current and attempted status.
    """
    return await case_service.update_case(db, actor, case_id, changes, request)


@router.delete("/{case_id}", response_model=MessageResponse)
async def delete_case(
    case_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    await case_service.delete_case(db, actor, case_id, request)
    return MessageResponse(message="Case deleted", id=case_id)
