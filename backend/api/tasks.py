"""
Task API endpoints
Agenda of interventions, meetings and follow-ups
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date

from database import get_db
from middleware.rbac import get_current_actor
from models_auth import Actor
from schemas import TaskCreate, TaskUpdate, TaskResponse, MessageResponse
from services import task_service
from services.task_lifecycle import TaskStatus

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    status: Optional[TaskStatus] = Query(None, description="Filter by status"),
    date_from: Optional[date] = Query(None, description="Tasks on or after this date"),
    date_to: Optional[date] = Query(None, description="Tasks on or before this date"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Tasks visible to the caller, ordered by date and time

    A task is visible to its creator, assignee and participants, to admins of
    its region, and to the super-admin.
    """
    return await task_service.list_tasks(db, actor, status, date_from, date_to)


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    task: TaskCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Schedule a task; only the super-admin may assign it or invite participants"""
    return await task_service.create_task(db, actor, task, request)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await task_service.get_task(db, actor, task_id)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    changes: TaskUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await task_service.update_task(db, actor, task_id, changes, request)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    await task_service.delete_task(db, actor, task_id, request)
    return MessageResponse(message="Task deleted", id=task_id)
