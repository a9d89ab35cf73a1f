"""
Role-Based Access Control (RBAC) dependencies for the GBV case tracker
Turns the bearer token into an Actor and gates routes by role
"""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from database import get_db
from models import User
from models_auth import Actor, UserRole
from services.audit_log import AuditAction, audit_service
from services.auth_service import actor_from_token
from services.case_service import parse_record_id
from services.errors import PermissionDenied, Unauthenticated

logger = logging.getLogger(__name__)

# Security scheme; missing headers are reported as Unauthenticated below
security = HTTPBearer(auto_error=False)


# ============================================================================
# AUTHENTICATION DEPENDENCIES
# ============================================================================

async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """
    Build the acting identity from the bearer token claims

    Raises:
        Unauthenticated: If the header is missing or the token is invalid/expired
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Not authenticated")
    return actor_from_token(credentials.credentials)


async def get_current_user(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Authoritative profile row for the token's subject

    Raises:
        Unauthenticated: If the account no longer exists
    """
    user_id = parse_record_id(actor.id)
    user = None
    if user_id is not None:
        result = await db.execute(select(User).where(User.user_id == user_id))
        user = result.scalar_one_or_none()
    if user is None:
        raise Unauthenticated("User not found")
    return user


# ============================================================================
# ROLE-BASED ACCESS CONTROL
# ============================================================================

class RoleChecker:
    """
    Callable dependency class for role-based access control

    Usage:
        @router.get("/audit-logs")
        async def endpoint(actor: Actor = Depends(RoleChecker([UserRole.super_admin]))):
            pass
    """

    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles = allowed_roles

    async def __call__(
        self,
        request: Request,
        actor: Actor = Depends(get_current_actor),
        db: AsyncSession = Depends(get_db),
    ) -> Actor:
        """
        Check if the actor has one of the allowed roles

        Raises:
            PermissionDenied: If the role is not allowed (or unknown)
        """
        if actor.role not in self.allowed_roles:
            logger.warning(f"Actor {actor.id} with role {actor.role} denied; requires {self.allowed_roles}")
            await audit_service.record(
                db, AuditAction.unauthorized_access, actor=actor,
                details={"path": request.url.path, "method": request.method},
                success=False, request=request,
            )
            raise PermissionDenied(
                f"Access denied. Required roles: {', '.join(r.value for r in self.allowed_roles)}"
            )
        return actor


def require_role(*roles: UserRole):
    """
    Dependency factory for role-based access control

    Usage:
        @router.post("/users", dependencies=[Depends(require_role(UserRole.admin, UserRole.super_admin))])
    """
    return RoleChecker(list(roles))


# Convenience dependencies
require_admin = require_role(UserRole.admin, UserRole.super_admin)
require_super_admin = require_role(UserRole.super_admin)
