"""
Task assignment & lifecycle

Status table, who may assign/invite, and the edit-permission matrix.
Visibility lives in services.scoping; the matrix here answers only whether a
(visible) task may be edited or deleted by an actor.
"""
from typing import Optional, Dict, FrozenSet, Iterable, List
import enum

from models_auth import Actor, UserRole
from services.errors import InvalidTransition, PermissionDenied


class TaskStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    cancelled = "cancelled"

    @classmethod
    def parse(cls, value) -> Optional["TaskStatus"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class TaskType(str, enum.Enum):
    case_listening = "case_listening"
    legal_assistance = "legal_assistance"
    medical_assistance = "medical_assistance"
    social_support = "social_support"
    awareness = "awareness"
    coordination = "coordination"
    training = "training"
    other = "other"


TASK_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.pending: frozenset({TaskStatus.completed, TaskStatus.cancelled}),
    TaskStatus.completed: frozenset(),
    TaskStatus.cancelled: frozenset(),
}


def can_transition(current, target) -> bool:
    current_status = TaskStatus.parse(current)
    target_status = TaskStatus.parse(target)
    if current_status is None or target_status is None:
        return False
    return target_status in TASK_TRANSITIONS[current_status]


def check_transition(current, target) -> Optional[InvalidTransition]:
    """None for a legal change or a same-state no-op, otherwise the denial"""
    current_status = TaskStatus.parse(current)
    if current_status is not None and current_status == TaskStatus.parse(target):
        return None
    if can_transition(current, target):
        return None
    return InvalidTransition(
        getattr(current, "value", current),
        getattr(target, "value", target),
        resource="Task",
    )


# ============================================================================
# EDIT-PERMISSION MATRIX
# ============================================================================

def can_edit_task(actor: Actor, task) -> bool:
    """
    Edit/delete matrix

    - super-admin: any task
    - admin: tasks their region covers, or that they created or hold,
      unless a super-admin created them
    - agent: only tasks assigned to or created by them
    Participation grants nothing here.
    """
    if actor.role == UserRole.super_admin:
        return True
    if actor.role == UserRole.admin:
        if UserRole.parse(task.creator_role) == UserRole.super_admin:
            return False
        if str(task.assigned_to) == actor.id or str(task.created_by) == actor.id:
            return True
        return actor.has_valid_scope and task.region == actor.region
    if actor.role == UserRole.agent:
        return str(task.assigned_to) == actor.id or str(task.created_by) == actor.id
    return False


# ============================================================================
# ASSIGNMENT
# ============================================================================

def may_assign_others(actor: Actor) -> bool:
    """Only the super-admin hands tasks to someone else or invites participants"""
    return actor.role == UserRole.super_admin


def normalize_participants(participants: Optional[Iterable]) -> List[str]:
    """De-duplicated participant ids, first occurrence order kept"""
    seen: List[str] = []
    for participant in participants or []:
        participant_id = str(participant)
        if participant_id not in seen:
            seen.append(participant_id)
    return seen


def check_assignment(
    actor: Actor,
    assigned_to: Optional[str],
    participants: Optional[Iterable],
    current_assigned_to: Optional[str] = None,
    current_participants: Optional[Iterable] = None,
) -> Optional[PermissionDenied]:
    """
    Evaluate requested assignee/participants against the actor's role

    For creation the current_* arguments are None and the baseline is the
    actor's self-assignment with no participants. Returns None when allowed.
    """
    if may_assign_others(actor):
        return None

    baseline_assignee = current_assigned_to if current_assigned_to is not None else actor.id
    baseline_participants = normalize_participants(current_participants)

    if assigned_to is not None and str(assigned_to) != str(baseline_assignee):
        return PermissionDenied("Only a super-admin can assign tasks to another user")
    if participants is not None and set(normalize_participants(participants)) != set(baseline_participants):
        return PermissionDenied("Only a super-admin can set task participants")
    return None
