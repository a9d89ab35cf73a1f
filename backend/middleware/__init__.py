"""
Middleware package for the GBV case tracker backend
"""
from .rbac import (
    get_current_actor,
    get_current_user,
    require_role,
    require_admin,
    require_super_admin,
    RoleChecker,
)
from .rate_limit import RateLimitMiddleware

__all__ = [
    # RBAC
    "get_current_actor",
    "get_current_user",
    "require_role",
    "require_admin",
    "require_super_admin",
    "RoleChecker",
    # Rate limiting
    "RateLimitMiddleware",
]
