"""
Task commands: create, list, fetch, update, delete

Visibility comes from services.scoping, edit rights and assignment rules from
services.task_lifecycle. Visibility is always checked first so that a task the
actor cannot see answers NotVisible, never PermissionDenied.
"""
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional
import logging
import uuid

from fastapi import Request
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import Case, Task, User
from models_auth import Actor
from schemas import TaskCreate, TaskUpdate
from services.audit_log import AuditAction, audit_service
from services.case_service import MAX_CAS_ATTEMPTS, parse_record_id
from services.errors import Conflict, NotVisible, PermissionDenied, ServerError, ValidationError
from services.scoping import can_mutate, can_view, visible_tasks
from services.task_lifecycle import (
    TaskStatus,
    can_transition,
    check_assignment,
    check_transition,
    normalize_participants,
)

logger = logging.getLogger(__name__)


async def _load_task(db: AsyncSession, task_id: uuid.UUID) -> Optional[Task]:
    result = await db.execute(
        select(Task).where(Task.task_id == task_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _users_by_id(db: AsyncSession, ids: Iterable[str]) -> Dict[str, User]:
    parsed = [p for p in (parse_record_id(i) for i in ids) if p is not None]
    if not parsed:
        return {}
    result = await db.execute(select(User).where(User.user_id.in_(parsed)))
    return {str(user.user_id): user for user in result.scalars().all()}


async def _check_people(db: AsyncSession, assigned_to: str, participants: List[str]) -> Dict[str, User]:
    """Assignee and participants must be existing accounts"""
    users = await _users_by_id(db, [assigned_to, *participants])
    details = []
    if assigned_to not in users:
        details.append("assigned_to: unknown user")
    unknown = [p for p in participants if p not in users]
    if unknown:
        details.append(f"participants: unknown user(s) {', '.join(unknown)}")
    if details:
        raise ValidationError(details)
    return users


async def _resolve_region(
    db: AsyncSession,
    actor: Actor,
    related_case_id: Optional[str],
    assignee: Optional[User],
) -> Optional[str]:
    """Related case's region, else the assignee's, else the creator's"""
    if related_case_id:
        parsed = parse_record_id(related_case_id)
        case = None
        if parsed is not None:
            result = await db.execute(select(Case).where(Case.case_id == parsed))
            case = result.scalar_one_or_none()
        if case is None or not can_view(actor, case):
            raise ValidationError(["related_case_id: unknown case"])
        return case.victim_region
    if assignee is not None and assignee.region:
        return assignee.region
    return actor.region


# ============================================================================
# QUERIES
# ============================================================================

async def list_tasks(
    db: AsyncSession,
    actor: Actor,
    status: Optional[TaskStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[Task]:
    """Tasks visible to the actor, ordered by date then time"""
    query = select(Task).order_by(Task.date.asc(), Task.time.asc())
    if status is not None:
        query = query.where(Task.status == TaskStatus(status).value)
    if date_from is not None:
        query = query.where(Task.date >= date_from)
    if date_to is not None:
        query = query.where(Task.date <= date_to)

    result = await db.execute(query)
    return visible_tasks(actor, result.scalars().all())


async def get_task(db: AsyncSession, actor: Actor, task_id: Any) -> Task:
    parsed = parse_record_id(task_id)
    task = await _load_task(db, parsed) if parsed else None
    if task is None:
        raise NotVisible("Task")
    if not can_view(actor, task):
        logger.warning(f"Actor {actor.id} ({actor.role}) denied view of task {task.task_id}")
        raise NotVisible("Task")
    return task


# ============================================================================
# COMMANDS
# ============================================================================

async def create_task(
    db: AsyncSession,
    actor: Actor,
    data: TaskCreate,
    request: Optional[Request] = None,
) -> Task:
    """
    Schedule a task

    Admins and agents always create self-assigned tasks without participants;
    only the super-admin hands a task to someone else or invites people.

    Raises:
        PermissionDenied: No usable scope, or assignment the role may not make
        ValidationError: Unknown assignee, participant or related case
    """
    if not actor.has_valid_scope:
        raise PermissionDenied("Your account has no region assigned")

    denial = check_assignment(actor, data.assigned_to, data.participants)
    if denial is not None:
        logger.warning(f"Actor {actor.id} ({actor.role}) denied task assignment")
        raise denial

    assigned_to = str(data.assigned_to) if data.assigned_to else actor.id
    participants = normalize_participants(data.participants)
    users = await _check_people(db, assigned_to, participants)
    region = await _resolve_region(db, actor, data.related_case_id, users.get(assigned_to))

    now = datetime.utcnow()
    task = Task(
        title=data.title,
        description=data.description,
        date=data.date,
        time=data.time,
        type=data.type.value,
        priority=data.priority.value,
        status=TaskStatus.pending.value,
        location=data.location,
        meeting_link=data.meeting_link,
        related_case_id=data.related_case_id,
        created_by=actor.id,
        creator_role=actor.role.value,
        assigned_to=assigned_to,
        participants=participants,
        region=region,
        created_at=now,
        updated_at=now,
    )

    try:
        db.add(task)
        await db.flush()
        audit_service.stage(
            db, AuditAction.task_create, actor=actor,
            resource_type="task", resource_id=task.task_id,
            details={"assigned_to": assigned_to, "participants": len(participants)},
            request=request,
        )
        await db.commit()
        await db.refresh(task)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error creating task for actor {actor.id}: {e}")
        raise ServerError("Failed to save task", cause=e)

    logger.info(f"Task {task.task_id} created by {actor.id}, assigned to {assigned_to}")
    return task


async def commit_task_update(
    db: AsyncSession,
    actor: Actor,
    task_id: uuid.UUID,
    expected_status: str,
    fields: Dict[str, Any],
    target_status: Optional[TaskStatus],
    request: Optional[Request],
) -> Task:
    attempted = target_status.value if target_status is not None else None

    for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
        values = dict(fields)
        values["updated_at"] = datetime.utcnow()
        if target_status is not None:
            values["status"] = target_status.value

        stmt = (
            update(Task)
            .where(Task.task_id == task_id, Task.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await db.execute(stmt)
            if result.rowcount == 1:
                audit_service.stage(
                    db, AuditAction.task_update, actor=actor,
                    resource_type="task", resource_id=task_id,
                    details={
                        "fields": sorted(fields),
                        "from_status": expected_status,
                        "to_status": attempted or expected_status,
                    },
                    request=request,
                )
                await db.commit()
                break
            await db.rollback()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error updating task {task_id}: {e}")
            raise ServerError("Failed to update task", cause=e)

        current = await _load_task(db, task_id)
        if current is None or not can_view(actor, current):
            raise NotVisible("Task")
        if not can_mutate(actor, current):
            raise PermissionDenied("Not authorized to modify this task")
        if target_status is not None and current.status != attempted and not can_transition(
            current.status, target_status
        ):
            raise Conflict(current.status, attempted, resource="Task")

        logger.info(f"Task {task_id} changed underneath update (attempt {attempt}), retrying from {current.status}")
        expected_status = current.status
    else:
        raise Conflict(expected_status, attempted or expected_status, resource="Task")

    return await _load_task(db, task_id)


async def update_task(
    db: AsyncSession,
    actor: Actor,
    task_id: Any,
    data: TaskUpdate,
    request: Optional[Request] = None,
) -> Task:
    """
    Edit a task and/or complete or cancel it

    Terminal tasks still accept non-status edits from actors with edit rights.

    Raises:
        NotVisible: Missing or not visible
        PermissionDenied: Visible but outside the edit matrix, or a forbidden reassignment
        InvalidTransition: Status move not in the task table
        Conflict: Concurrent change invalidated the transition
    """
    task = await get_task(db, actor, task_id)
    if not can_mutate(actor, task):
        logger.warning(f"Actor {actor.id} ({actor.role}) denied edit of task {task.task_id}")
        raise PermissionDenied("Not authorized to modify this task")

    changes = data.model_dump(exclude_unset=True)
    requested_status = changes.pop("status", None)

    denial = check_assignment(
        actor,
        changes.get("assigned_to"),
        changes.get("participants"),
        current_assigned_to=task.assigned_to,
        current_participants=task.participants,
    )
    if denial is not None:
        logger.warning(f"Actor {actor.id} ({actor.role}) denied reassignment of task {task.task_id}")
        raise denial

    for key in ("title", "date", "time", "type", "priority"):
        if key in changes and changes[key] is None:
            raise ValidationError([f"{key}: field required"])
    for key in ("type", "priority"):
        if key in changes:
            changes[key] = changes[key].value
    if "assigned_to" in changes:
        if changes["assigned_to"] is None:
            raise ValidationError(["assigned_to: field required"])
        changes["assigned_to"] = str(changes["assigned_to"])
    if "participants" in changes:
        changes["participants"] = normalize_participants(changes["participants"])

    fields = {key: value for key, value in changes.items() if getattr(task, key) != value}

    if "assigned_to" in fields or "participants" in fields:
        users = await _check_people(
            db,
            fields.get("assigned_to", task.assigned_to),
            fields.get("participants", normalize_participants(task.participants)),
        )
    else:
        users = {}
    if "related_case_id" in fields or "assigned_to" in fields:
        assignee_id = fields.get("assigned_to", task.assigned_to)
        if assignee_id not in users:
            users.update(await _users_by_id(db, [assignee_id]))
        region = await _resolve_region(
            db, actor, fields.get("related_case_id", task.related_case_id), users.get(assignee_id)
        )
        if region != task.region:
            fields["region"] = region

    target_status = None
    if requested_status is not None and TaskStatus.parse(task.status) != requested_status:
        denial = check_transition(task.status, requested_status)
        if denial is not None:
            logger.warning(
                f"Actor {actor.id} attempted invalid transition {task.status} -> "
                f"{requested_status.value} on task {task.task_id}"
            )
            raise denial
        target_status = TaskStatus(requested_status)

    if not fields and target_status is None:
        return task

    return await commit_task_update(
        db, actor, task.task_id, task.status, fields, target_status, request
    )


async def delete_task(
    db: AsyncSession,
    actor: Actor,
    task_id: Any,
    request: Optional[Request] = None,
) -> None:
    task = await get_task(db, actor, task_id)
    if not can_mutate(actor, task):
        logger.warning(f"Actor {actor.id} ({actor.role}) denied delete of task {task.task_id}")
        raise PermissionDenied("Not authorized to delete this task")

    try:
        audit_service.stage(
            db, AuditAction.task_delete, actor=actor,
            resource_type="task", resource_id=task.task_id,
            details={"status": task.status}, request=request,
        )
        await db.delete(task)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error deleting task {task.task_id}: {e}")
        raise ServerError("Failed to delete task", cause=e)

    logger.info(f"Task {task.task_id} deleted by {actor.id}")
