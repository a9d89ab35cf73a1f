"""
User administration API endpoints
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from database import get_db
from middleware.rbac import get_current_actor, require_admin
from models_auth import Actor
from schemas import UserCreate, UserUpdate, UserResponse, MessageResponse
from services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserResponse])
async def list_users(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Accounts visible to the caller

    Super-admin: everyone. Admin: their region. Agent: only themself.
    """
    return await user_service.list_users(db, actor)


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    user: UserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin)
):
    """Admins create agents in their own region; the super-admin creates any account"""
    return await user_service.create_user(db, actor, user, request)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await user_service.get_user(db, actor, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    changes: UserUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await user_service.update_user(db, actor, user_id, changes, request)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin)
):
    await user_service.delete_user(db, actor, user_id, request)
    return MessageResponse(message="User deleted", id=user_id)
