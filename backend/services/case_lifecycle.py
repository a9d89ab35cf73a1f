"""
Case lifecycle: status taxonomy and the fixed transition table
"""
from typing import Optional, Dict, FrozenSet
import enum

from services.errors import InvalidTransition


class CaseStatus(str, enum.Enum):
    pending = "pending"
    open = "open"
    completed = "completed"
    follow_up = "follow-up"
    archived = "archived"

    @classmethod
    def parse(cls, value) -> Optional["CaseStatus"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


CASE_TRANSITIONS: Dict[CaseStatus, FrozenSet[CaseStatus]] = {
    CaseStatus.pending: frozenset({CaseStatus.open, CaseStatus.archived}),
    CaseStatus.open: frozenset({CaseStatus.completed, CaseStatus.follow_up, CaseStatus.archived}),
    CaseStatus.follow_up: frozenset({CaseStatus.open, CaseStatus.archived}),
    CaseStatus.completed: frozenset({CaseStatus.archived}),
    CaseStatus.archived: frozenset(),
}

INITIAL_STATUS = CaseStatus.pending

# Statuses counted as resolved by reporting. Archived is deliberately absent.
RESOLVED_STATUSES = frozenset({CaseStatus.completed})


def can_transition(current, target) -> bool:
    """True only for pairs listed in CASE_TRANSITIONS; unknown states never pass"""
    current_status = CaseStatus.parse(current)
    target_status = CaseStatus.parse(target)
    if current_status is None or target_status is None:
        return False
    return target_status in CASE_TRANSITIONS[current_status]


def is_noop(current, target) -> bool:
    """Same-state requests are not transitions"""
    current_status = CaseStatus.parse(current)
    return current_status is not None and current_status == CaseStatus.parse(target)


def check_transition(current, target) -> Optional[InvalidTransition]:
    """
    Evaluate a requested status change

    Returns:
        None when the change is a no-op or listed in the table,
        an InvalidTransition describing the denial otherwise
    """
    if is_noop(current, target) or can_transition(current, target):
        return None
    return InvalidTransition(str(_value(current)), str(_value(target)), resource="Case")


def _value(status):
    return status.value if isinstance(status, enum.Enum) else status
