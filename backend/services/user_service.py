"""
User administration

Who may see, create, edit and delete accounts. Regional admins manage the
agents of their own region; the super-admin manages everyone; every account
may edit its own profile but never its role, region or status.
"""
from datetime import datetime
from typing import Any, List, Optional
import logging

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from models_auth import Actor, REGION_BOUND_ROLES, UserRole
from schemas import UserCreate, UserUpdate
from services.audit_log import AuditAction, audit_service
from services.auth_service import hash_password
from services.case_service import parse_record_id
from services.errors import NotVisible, PermissionDenied, ServerError, ValidationError

logger = logging.getLogger(__name__)


# ============================================================================
# PREDICATES
# ============================================================================

def can_view_user(actor: Actor, user: User) -> bool:
    if not actor.has_valid_scope:
        return False
    if actor.role == UserRole.super_admin:
        return True
    if actor.role == UserRole.admin:
        return user.region == actor.region
    return str(user.user_id) == actor.id


def can_manage_user(actor: Actor, user: User) -> bool:
    """Admin-level control (status changes) over another account"""
    if str(user.user_id) == actor.id:
        return False
    if actor.role == UserRole.super_admin:
        return True
    if actor.role == UserRole.admin:
        return (
            actor.has_valid_scope
            and user.region == actor.region
            and UserRole.parse(user.role) != UserRole.super_admin
        )
    return False


def can_edit_user(actor: Actor, user: User) -> bool:
    return str(user.user_id) == actor.id or can_manage_user(actor, user)


def can_delete_user(actor: Actor, user: User) -> bool:
    if str(user.user_id) == actor.id:
        return False
    if actor.role == UserRole.super_admin:
        return True
    if actor.role == UserRole.admin:
        return (
            actor.has_valid_scope
            and UserRole.parse(user.role) == UserRole.agent
            and user.region == actor.region
        )
    return False


async def _ensure_unique(
    db: AsyncSession,
    username: Optional[str],
    email: Optional[str],
    exclude_id=None,
) -> None:
    details = []
    if username:
        query = select(User.user_id).where(User.username == username)
        if exclude_id is not None:
            query = query.where(User.user_id != exclude_id)
        if (await db.execute(query)).first():
            details.append("username: already in use")
    if email:
        query = select(User.user_id).where(User.email == email)
        if exclude_id is not None:
            query = query.where(User.user_id != exclude_id)
        if (await db.execute(query)).first():
            details.append("email: already in use")
    if details:
        raise ValidationError(details)


# ============================================================================
# QUERIES
# ============================================================================

async def list_users(db: AsyncSession, actor: Actor) -> List[User]:
    query = select(User).order_by(User.name.asc())
    if actor.role == UserRole.admin:
        query = query.where(User.region == actor.region)
    elif actor.role != UserRole.super_admin:
        query = query.where(User.user_id == parse_record_id(actor.id))
    result = await db.execute(query)
    return [user for user in result.scalars().all() if can_view_user(actor, user)]


async def get_user(db: AsyncSession, actor: Actor, user_id: Any) -> User:
    parsed = parse_record_id(user_id)
    user = None
    if parsed is not None:
        result = await db.execute(select(User).where(User.user_id == parsed))
        user = result.scalar_one_or_none()
    if user is None or not can_view_user(actor, user):
        raise NotVisible("User")
    return user


# ============================================================================
# COMMANDS
# ============================================================================

async def create_user(
    db: AsyncSession,
    actor: Actor,
    data: UserCreate,
    request: Optional[Request] = None,
) -> User:
    """
    Create an account

    Raises:
        PermissionDenied: Agents, or an admin creating anything but an agent of their region
        ValidationError: Duplicate username/email, or a region-bound role without region
    """
    role = data.role or UserRole.agent
    region = data.region

    if actor.role == UserRole.admin:
        if not actor.has_valid_scope:
            raise PermissionDenied("Your account has no region assigned")
        if role != UserRole.agent:
            raise PermissionDenied("Admins can only create agent accounts")
        if region and region != actor.region:
            raise PermissionDenied("Admins can only create users in their own region")
        region = actor.region
    elif actor.role != UserRole.super_admin:
        raise PermissionDenied("Not authorized to create users")

    if role in REGION_BOUND_ROLES and not region:
        raise ValidationError(["region: required for agent and admin accounts"])

    email = str(data.email) if data.email else None
    await _ensure_unique(db, data.username, email)

    now = datetime.utcnow()
    user = User(
        name=data.name,
        username=data.username,
        email=email,
        password_hash=hash_password(data.password),
        role=role.value,
        region=region,
        department=data.department,
        commune=data.commune,
        phone=data.phone,
        status="active",
        failed_login_attempts=0,
        created_at=now,
        updated_at=now,
    )

    try:
        db.add(user)
        await db.flush()
        audit_service.stage(
            db, AuditAction.user_create, actor=actor,
            resource_type="user", resource_id=user.user_id,
            details={"role": role.value, "region": region}, request=request,
        )
        await db.commit()
        await db.refresh(user)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error creating user {data.username}: {e}")
        raise ServerError("Failed to create user", cause=e)

    logger.info(f"User {user.user_id} ({role.value}) created by {actor.id}")
    return user


async def update_user(
    db: AsyncSession,
    actor: Actor,
    user_id: Any,
    data: UserUpdate,
    request: Optional[Request] = None,
) -> User:
    """
    Edit an account

    Only the super-admin changes role or region; status changes need
    admin-level control over somebody else's account.
    """
    user = await get_user(db, actor, user_id)
    if not can_edit_user(actor, user):
        logger.warning(f"Actor {actor.id} ({actor.role}) denied edit of user {user.user_id}")
        raise PermissionDenied("Not authorized to modify this user")

    changes = data.model_dump(exclude_unset=True)
    password = changes.pop("password", None)

    if "role" in changes:
        role = changes["role"]
        if role is None:
            raise ValidationError(["role: field required"])
        changes["role"] = role.value
    if "email" in changes and changes["email"] is not None:
        changes["email"] = str(changes["email"])
    for key in ("name", "username", "status"):
        if key in changes and changes[key] is None:
            raise ValidationError([f"{key}: field required"])

    fields = {key: value for key, value in changes.items() if getattr(user, key) != value}

    if str(user.user_id) == actor.id and {"role", "region", "status"} & fields.keys():
        logger.warning(f"Actor {actor.id} attempted to change own role, region or status")
        raise PermissionDenied("You cannot change your own role, region or status")
    if ("role" in fields or "region" in fields) and actor.role != UserRole.super_admin:
        raise PermissionDenied("Only the super-admin can change roles and regions")
    if "status" in fields and not can_manage_user(actor, user):
        raise PermissionDenied("Not authorized to change this account's status")

    new_role = UserRole.parse(fields.get("role", user.role))
    if new_role in REGION_BOUND_ROLES and not fields.get("region", user.region):
        raise ValidationError(["region: required for agent and admin accounts"])

    await _ensure_unique(db, fields.get("username"), fields.get("email"), exclude_id=user.user_id)

    if not fields and not password:
        return user

    previous_role = user.role
    for key, value in fields.items():
        setattr(user, key, value)
    if password:
        user.password_hash = hash_password(password)
    user.updated_at = datetime.utcnow()

    try:
        audit_service.stage(
            db, AuditAction.user_update, actor=actor,
            resource_type="user", resource_id=user.user_id,
            details={"fields": sorted(fields)}, request=request,
        )
        if "role" in fields:
            audit_service.stage(
                db, AuditAction.role_change, actor=actor,
                resource_type="user", resource_id=user.user_id,
                details={"from": previous_role, "to": fields["role"]}, request=request,
            )
        if password:
            audit_service.stage(
                db, AuditAction.password_change, actor=actor,
                resource_type="user", resource_id=user.user_id, request=request,
            )
        await db.commit()
        await db.refresh(user)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error updating user {user.user_id}: {e}")
        raise ServerError("Failed to update user", cause=e)

    logger.info(f"User {user.user_id} updated by {actor.id}")
    return user


async def delete_user(
    db: AsyncSession,
    actor: Actor,
    user_id: Any,
    request: Optional[Request] = None,
) -> None:
    user = await get_user(db, actor, user_id)
    if str(user.user_id) == actor.id:
        raise PermissionDenied("You cannot delete your own account")
    if not can_delete_user(actor, user):
        logger.warning(f"Actor {actor.id} ({actor.role}) denied delete of user {user.user_id}")
        raise PermissionDenied("Not authorized to delete this user")

    try:
        audit_service.stage(
            db, AuditAction.user_delete, actor=actor,
            resource_type="user", resource_id=user.user_id,
            details={"role": user.role, "region": user.region}, request=request,
        )
        await db.delete(user)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error deleting user {user.user_id}: {e}")
        raise ServerError("Failed to delete user", cause=e)

    logger.info(f"User {user.user_id} deleted by {actor.id}")
