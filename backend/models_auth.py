"""
Identity models for the GBV case tracker
Closed role enumeration and the immutable Actor built from token claims
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any
import enum


class UserRole(str, enum.Enum):
    """User role enumeration for RBAC"""
    agent = "agent"
    admin = "admin"
    super_admin = "super-admin"

    @classmethod
    def parse(cls, value: Any) -> Optional["UserRole"]:
        """Map a raw claim/column value onto a role, None when unrecognized"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


# Roles whose scope is bounded by their region
REGION_BOUND_ROLES = frozenset({UserRole.agent, UserRole.admin})


@dataclass(frozen=True)
class Actor:
    """
    Authenticated identity driving every authorization decision

    Built once per request from the bearer token claims. `role` is None when
    the token carries a role this service does not know; every predicate
    treats such an actor as seeing nothing.
    """
    id: str
    role: Optional[UserRole]
    region: Optional[str]
    name: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Actor":
        region = claims.get("region") or None
        return cls(
            id=str(claims["sub"]),
            role=UserRole.parse(claims.get("role")),
            region=region,
            name=claims.get("name"),
        )

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(
            id=str(user.user_id),
            role=UserRole.parse(user.role),
            region=user.region or None,
            name=user.name,
        )

    def to_claims(self) -> Dict[str, Any]:
        return {
            "sub": self.id,
            "role": self.role.value if self.role else None,
            "region": self.region,
            "name": self.name,
        }

    @property
    def has_valid_scope(self) -> bool:
        """False for unknown roles and for region-bound roles without a region"""
        if self.role is None:
            return False
        if self.role in REGION_BOUND_ROLES:
            return bool(self.region)
        return True

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.super_admin

    def __repr__(self):
        return f"<Actor(id={self.id}, role={self.role}, region={self.region})>"
