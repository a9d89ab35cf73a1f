"""
Case commands: create, list, fetch, update (with status transitions), delete

Every command takes the acting identity explicitly. Visibility is decided by
services.scoping, status moves by services.case_lifecycle; this module turns
their verdicts into typed errors and persists the outcome together with its
audit row.
"""
from datetime import datetime
from typing import Any, Dict, Optional
import logging
import uuid

from fastapi import Request
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import Case
from models_auth import Actor, UserRole
from schemas import CaseCreate, CaseUpdate
from services.audit_log import AuditAction, audit_service
from services.case_lifecycle import CaseStatus, INITIAL_STATUS, can_transition, check_transition, is_noop
from services.errors import Conflict, NotVisible, PermissionDenied, ServerError, ValidationError
from services.scoping import (
    ScopedCases,
    can_mutate,
    can_place_case_in_region,
    can_view,
    case_scope_filter,
    visible_cases,
)

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 3


def parse_record_id(value: Any) -> Optional[uuid.UUID]:
    """UUID from a path parameter, None for anything malformed"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


async def _load_case(db: AsyncSession, case_id: uuid.UUID) -> Optional[Case]:
    result = await db.execute(
        select(Case).where(Case.case_id == case_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ============================================================================
# QUERIES
# ============================================================================

async def list_cases(db: AsyncSession, actor: Actor) -> ScopedCases:
    """Cases the actor may see, newest submission first"""
    query = (
        select(Case)
        .where(case_scope_filter(actor))
        .order_by(Case.submitted_at.desc(), Case.created_at.desc())
    )
    result = await db.execute(query)
    return visible_cases(actor, result.scalars().all())


async def get_case(db: AsyncSession, actor: Actor, case_id: Any) -> Case:
    """
    Fetch a single case

    Raises:
        NotVisible: Missing or outside the actor's scope (indistinguishable)
    """
    parsed = parse_record_id(case_id)
    case = await _load_case(db, parsed) if parsed else None
    if case is None:
        raise NotVisible("Case")
    if not can_view(actor, case):
        logger.warning(f"Actor {actor.id} ({actor.role}) denied view of case {case.case_id}")
        raise NotVisible("Case")
    return case


# ============================================================================
# COMMANDS
# ============================================================================

def _initial_status(actor: Actor, requested: Optional[CaseStatus]) -> CaseStatus:
    if requested is None or requested == INITIAL_STATUS:
        return INITIAL_STATUS
    if actor.role == UserRole.agent:
        raise ValidationError([f"status: agents open cases as '{INITIAL_STATUS.value}'"])
    return requested


def _target_region(actor: Actor, requested: Optional[str]) -> str:
    region = requested or (actor.region if actor.role != UserRole.super_admin else None)
    if not region:
        raise ValidationError(["victim_region: field required"])
    if not can_place_case_in_region(actor, region):
        logger.warning(f"Actor {actor.id} ({actor.role}) denied case placement in {region}")
        raise PermissionDenied("Cannot register a case outside your region")
    return region


async def create_case(
    db: AsyncSession,
    actor: Actor,
    data: CaseCreate,
    request: Optional[Request] = None,
) -> Case:
    """
    Register a new case owned by the actor

    Raises:
        PermissionDenied: Actor has no usable scope or targets a foreign region
        ValidationError: Missing region, or an agent asking for a non-initial status
    """
    if not actor.has_valid_scope:
        raise PermissionDenied("Your account has no region assigned")

    region = _target_region(actor, data.victim_region)
    status = _initial_status(actor, data.status)

    now = datetime.utcnow()
    fields = data.model_dump(exclude_unset=True, exclude={"status", "victim_region"})
    case = Case(
        **fields,
        victim_region=region,
        status=status.value,
        agent_id=actor.id,
        agent_name=actor.name,
        submitted_at=now,
        created_at=now,
        updated_at=now,
    )

    try:
        db.add(case)
        await db.flush()
        audit_service.stage(
            db, AuditAction.case_create, actor=actor,
            resource_type="case", resource_id=case.case_id,
            details={"region": region, "status": status.value}, request=request,
        )
        await db.commit()
        await db.refresh(case)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error creating case for actor {actor.id}: {e}")
        raise ServerError("Failed to save case", cause=e)

    logger.info(f"Case {case.case_id} created by {actor.id} in {region} ({status.value})")
    return case


async def commit_case_update(
    db: AsyncSession,
    actor: Actor,
    case_id: uuid.UUID,
    expected_status: str,
    fields: Dict[str, Any],
    target_status: Optional[CaseStatus] = None,
    request: Optional[Request] = None,
) -> Case:
    """
    Compare-and-set write of a case

    The UPDATE only matches while the stored status still equals
    `expected_status`. On a miss the record is re-read: gone or no longer
    ours is NotVisible, a status from which the move is still legal is
    retried, anything else is Conflict.
    """
    attempted = target_status.value if target_status is not None else None

    for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
        values = dict(fields)
        values["updated_at"] = datetime.utcnow()
        if target_status is not None:
            values["status"] = target_status.value

        stmt = (
            update(Case)
            .where(Case.case_id == case_id, Case.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await db.execute(stmt)
            if result.rowcount == 1:
                audit_service.stage(
                    db, AuditAction.case_update, actor=actor,
                    resource_type="case", resource_id=case_id,
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
            logger.error(f"Error updating case {case_id}: {e}")
            raise ServerError("Failed to update case", cause=e)

        current = await _load_case(db, case_id)
        if current is None or not can_mutate(actor, current):
            raise NotVisible("Case")
        if target_status is not None and not (
            is_noop(current.status, target_status) or can_transition(current.status, target_status)
        ):
            logger.warning(
                f"Case {case_id} moved to {current.status} concurrently; "
                f"{actor.id} cannot apply {attempted}"
            )
            raise Conflict(current.status, attempted, resource="Case")

        logger.info(f"Case {case_id} changed underneath update (attempt {attempt}), retrying from {current.status}")
        expected_status = current.status
    else:
        raise Conflict(expected_status, attempted or expected_status, resource="Case")

    if attempted is not None and attempted != expected_status:
        logger.info(f"Case {case_id} moved {expected_status} -> {attempted} by {actor.id}")
    return await _load_case(db, case_id)


async def update_case(
    db: AsyncSession,
    actor: Actor,
    case_id: Any,
    data: CaseUpdate,
    request: Optional[Request] = None,
) -> Case:
    """
    Edit fields and/or drive a status transition

    Raises:
        NotVisible: Missing or outside scope
        PermissionDenied: Visible but not mutable, or re-homing out of scope
        ValidationError: Required field cleared
        InvalidTransition: Status pair not in the lifecycle table
        Conflict: Concurrent change invalidated the transition
    """
    case = await get_case(db, actor, case_id)
    if not can_mutate(actor, case):
        logger.warning(f"Actor {actor.id} ({actor.role}) denied update of case {case.case_id}")
        raise PermissionDenied("Not authorized to modify this case")

    changes = data.model_dump(exclude_unset=True)
    requested_status = changes.pop("status", None)

    if "victim_region" in changes:
        region = changes["victim_region"]
        if not region:
            raise ValidationError(["victim_region: field required"])
        if region != case.victim_region and not can_place_case_in_region(actor, region):
            logger.warning(f"Actor {actor.id} ({actor.role}) denied moving case {case.case_id} to {region}")
            raise PermissionDenied("Cannot move a case outside your region")

    fields = {key: value for key, value in changes.items() if getattr(case, key) != value}

    target_status = None
    if requested_status is not None and not is_noop(case.status, requested_status):
        denial = check_transition(case.status, requested_status)
        if denial is not None:
            logger.warning(
                f"Actor {actor.id} attempted invalid transition {case.status} -> "
                f"{requested_status.value} on case {case.case_id}"
            )
            raise denial
        target_status = CaseStatus(requested_status)

    if not fields and target_status is None:
        return case

    return await commit_case_update(
        db, actor, case.case_id, case.status, fields, target_status=target_status, request=request
    )


async def delete_case(
    db: AsyncSession,
    actor: Actor,
    case_id: Any,
    request: Optional[Request] = None,
) -> None:
    case = await get_case(db, actor, case_id)
    if not can_mutate(actor, case):
        logger.warning(f"Actor {actor.id} ({actor.role}) denied delete of case {case.case_id}")
        raise PermissionDenied("Not authorized to delete this case")

    try:
        audit_service.stage(
            db, AuditAction.case_delete, actor=actor,
            resource_type="case", resource_id=case.case_id,
            details={"status": case.status, "region": case.victim_region}, request=request,
        )
        await db.delete(case)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error deleting case {case.case_id}: {e}")
        raise ServerError("Failed to delete case", cause=e)

    logger.info(f"Case {case.case_id} deleted by {actor.id}")
