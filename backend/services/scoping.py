"""
Scoping Engine

Decides, for an actor and a Case or Task record, whether the record is
visible and whether it may be mutated. Every predicate is pure and total:
unknown roles and region-bound actors without a region see nothing.
"""
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import and_, false, true
from sqlalchemy.sql.elements import ColumnElement

from models import Case, Task
from models_auth import Actor, UserRole
from services.task_lifecycle import can_edit_task, normalize_participants


@dataclass(frozen=True)
class ScopedCases:
    """Cases already filtered for `actor`. Aggregation accepts nothing else."""
    actor: Actor
    records: Tuple

    def __iter__(self) -> Iterator:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def narrow(self, region: Optional[str]) -> "ScopedCases":
        """Restrict further to one region; can only shrink the set"""
        if not region:
            return self
        return ScopedCases(self.actor, tuple(c for c in self.records if c.victim_region == region))


# ============================================================================
# CASES
# ============================================================================

def can_view_case(actor: Actor, case) -> bool:
    if not actor.has_valid_scope:
        return False
    if actor.role == UserRole.super_admin:
        return True
    if actor.role == UserRole.admin:
        return case.victim_region == actor.region
    if actor.role == UserRole.agent:
        return str(case.agent_id) == actor.id
    return False


def can_mutate_case(actor: Actor, case) -> bool:
    """Update/delete rights mirror visibility; agents only ever see their own cases"""
    if not can_view_case(actor, case):
        return False
    if actor.role == UserRole.agent:
        return str(case.agent_id) == actor.id
    return True


def can_place_case_in_region(actor: Actor, region: Optional[str]) -> bool:
    """Whether the actor may create a case in, or move a case to, `region`"""
    if not actor.has_valid_scope or not region:
        return False
    if actor.role == UserRole.super_admin:
        return True
    if actor.role in (UserRole.admin, UserRole.agent):
        return region == actor.region
    return False


def visible_cases(actor: Actor, cases: Iterable) -> ScopedCases:
    return ScopedCases(actor, tuple(c for c in cases if can_view_case(actor, c)))


def case_scope_filter(actor: Actor) -> ColumnElement:
    """SQL pre-filter equivalent to can_view_case"""
    if not actor.has_valid_scope:
        return false()
    if actor.role == UserRole.super_admin:
        return true()
    if actor.role == UserRole.admin:
        return and_(Case.victim_region == actor.region)
    if actor.role == UserRole.agent:
        return and_(Case.agent_id == actor.id)
    return false()


# ============================================================================
# TASKS
# ============================================================================

def is_task_member(actor: Actor, task) -> bool:
    """Creator, assignee or participant"""
    if str(task.created_by) == actor.id or str(task.assigned_to) == actor.id:
        return True
    return actor.id in normalize_participants(task.participants)


def can_view_task(actor: Actor, task) -> bool:
    if not actor.has_valid_scope:
        return False
    if actor.role == UserRole.super_admin:
        return True
    if is_task_member(actor, task):
        return True
    if actor.role == UserRole.admin:
        return task.region == actor.region
    return False


def visible_tasks(actor: Actor, tasks: Iterable) -> List:
    return [t for t in tasks if can_view_task(actor, t)]


def can_mutate_task(actor: Actor, task) -> bool:
    return can_view_task(actor, task) and can_edit_task(actor, task)


# ============================================================================
# DISPATCH
# ============================================================================

def can_view(actor: Actor, record) -> bool:
    """Visibility of any case or task; the services check records through here"""
    if isinstance(record, Case):
        return can_view_case(actor, record)
    if isinstance(record, Task):
        return can_view_task(actor, record)
    return False


def can_mutate(actor: Actor, record) -> bool:
    """Update/delete rights for any case or task"""
    if isinstance(record, Case):
        return can_mutate_case(actor, record)
    if isinstance(record, Task):
        return can_mutate_task(actor, record)
    return False
