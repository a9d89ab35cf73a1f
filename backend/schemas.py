"""
Pydantic schemas for request/response validation
"""
from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime, date as date_type, time as time_type
from uuid import UUID

from config.reference import REGIONS, GENDERS, MAX_AGE, MAX_DESCRIPTION_LENGTH, SERVICES, VIOLENCE_TYPES
from models_auth import UserRole
from services.case_lifecycle import CaseStatus
from services.task_lifecycle import TaskStatus, TaskPriority, TaskType


def _check_region(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if value not in REGIONS:
        raise ValueError(f"Unknown region '{value}'")
    return value


# ============================================================================
# CASE SCHEMAS
# ============================================================================

class CaseFields(BaseModel):
    """Descriptive case fields shared by create/update/response"""
    # Victim
    victim_name: Optional[str] = Field(None, max_length=255)
    victim_age: Optional[int] = Field(None, ge=0, le=MAX_AGE)
    victim_gender: Optional[str] = None
    victim_disability: Optional[str] = None
    victim_marital_status: Optional[str] = None
    victim_religion: Optional[str] = None
    victim_ethnicity: Optional[str] = None
    victim_education: Optional[str] = None
    victim_profession: Optional[str] = None
    victim_commune: Optional[str] = None

    # Perpetrator
    perpetrator_name: Optional[str] = Field(None, max_length=255)
    perpetrator_gender: Optional[str] = None
    perpetrator_age: Optional[int] = Field(None, ge=0, le=MAX_AGE)
    perpetrator_profession: Optional[str] = None
    perpetrator_region: Optional[str] = None
    perpetrator_commune: Optional[str] = None
    perpetrator_social_class: Optional[str] = None
    relationship_to_victim: Optional[str] = None

    # Violence
    violence_type: Optional[str] = Field(None, max_length=100)
    violence_description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    incident_date: Optional[str] = None
    incident_location: Optional[str] = None

    # Support & referral
    services_provided: Optional[List[str]] = None
    follow_up_required: Optional[str] = None
    support_needs: Optional[str] = None
    referrals: Optional[str] = None


class _CaseInput(CaseFields):
    victim_region: Optional[str] = None
    status: Optional[CaseStatus] = None

    @validator("victim_gender")
    def validate_gender(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        if v not in GENDERS:
            raise ValueError("Invalid gender")
        return v

    @validator("victim_region")
    def validate_region(cls, v):
        return _check_region(v)

    @validator("violence_type")
    def validate_violence_type(cls, v):
        if v is not None and v not in VIOLENCE_TYPES:
            raise ValueError(f"Unknown violence type: {v}")
        return v

    @validator("services_provided")
    def validate_services(cls, v):
        if v is None:
            return v
        unknown = [s for s in v if s not in SERVICES]
        if unknown:
            raise ValueError(f"Unknown service(s): {', '.join(unknown)}")
        return list(dict.fromkeys(v))


class CaseCreate(_CaseInput):
    """Schema for creating a case. Agents may omit victim_region (defaults to theirs)."""


class CaseUpdate(_CaseInput):
    """Schema for updating a case (all fields optional). A status change is a transition."""


class CaseResponse(CaseFields):
    """Schema for case response"""
    case_id: UUID
    victim_region: str
    status: str
    agent_id: str
    agent_name: Optional[str] = None
    submitted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# TASK SCHEMAS
# ============================================================================

class TaskCreate(BaseModel):
    """Schema for creating a task. Only a super-admin may set assigned_to/participants."""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    date: date_type
    time: time_type
    type: TaskType = TaskType.other
    priority: TaskPriority = TaskPriority.medium
    location: Optional[str] = Field(None, max_length=255)
    meeting_link: Optional[str] = Field(None, max_length=500)
    related_case_id: Optional[str] = None
    assigned_to: Optional[str] = None
    participants: Optional[List[str]] = None


class TaskUpdate(BaseModel):
    """Schema for updating a task (all fields optional)"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    date: Optional[date_type] = None
    time: Optional[time_type] = None
    type: Optional[TaskType] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    location: Optional[str] = Field(None, max_length=255)
    meeting_link: Optional[str] = Field(None, max_length=500)
    related_case_id: Optional[str] = None
    assigned_to: Optional[str] = None
    participants: Optional[List[str]] = None


class TaskResponse(BaseModel):
    """Schema for task response"""
    task_id: UUID
    title: str
    description: Optional[str] = None
    date: date_type
    time: time_type
    type: str
    priority: str
    status: str
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    related_case_id: Optional[str] = None
    created_by: str
    creator_role: str
    assigned_to: str
    participants: List[str] = []
    region: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# USER & AUTH SCHEMAS
# ============================================================================

class UserCreate(BaseModel):
    """Schema for creating a user (admin only)"""
    name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_]+$")
    email: Optional[EmailStr] = None
    password: str = Field(..., min_length=6, max_length=100)
    role: Optional[UserRole] = None
    region: Optional[str] = None
    department: Optional[str] = None
    commune: Optional[str] = None
    phone: Optional[str] = None

    @validator("email", pre=True)
    def blank_email_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @validator("region")
    def validate_region(cls, v):
        return _check_region(v)


class UserUpdate(BaseModel):
    """Schema for updating a user (all fields optional)"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_]+$")
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6, max_length=100)
    role: Optional[UserRole] = None
    region: Optional[str] = None
    department: Optional[str] = None
    commune: Optional[str] = None
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    status: Optional[str] = Field(None, pattern=r"^(active|inactive)$")

    @validator("email", pre=True)
    def blank_email_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @validator("region")
    def validate_region(cls, v):
        return _check_region(v)


class UserResponse(BaseModel):
    """Schema for user response (never carries the password hash)"""
    user_id: UUID
    name: str
    username: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str
    region: Optional[str] = None
    department: Optional[str] = None
    commune: Optional[str] = None
    profile_picture: Optional[str] = None
    status: str
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LoginRequest(BaseModel):
    """Schema for user login"""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Schema for JWT token response"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# ============================================================================
# ANALYTICS SCHEMAS
# ============================================================================

class BreakdownItemResponse(BaseModel):
    label: str
    count: int
    percentage: float
    resolved: Optional[int] = None


class BreakdownResponse(BaseModel):
    """Ordered breakdown along one dimension"""
    dimension: str
    total_cases: int
    items: List[BreakdownItemResponse]


class CaseSummaryResponse(BaseModel):
    """Headline numbers for the scoped case set"""
    total: int
    by_status: Dict[str, int]
    resolved: int
    pending: int
    resolution_rate: float
    region: Optional[str] = None


# ============================================================================
# AUDIT SCHEMAS
# ============================================================================

class AuditLogItem(BaseModel):
    audit_id: UUID
    action: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    ip_address: Optional[str] = None
    details: Dict[str, Any] = {}
    success: bool
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    total: int
    skip: int
    limit: int
    logs: List[AuditLogItem]


# ============================================================================
# UTILITY SCHEMAS
# ============================================================================

class MessageResponse(BaseModel):
    """Generic message response"""
    message: str
    id: Optional[str] = None
