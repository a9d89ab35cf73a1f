"""
Compare-and-set behaviour of case and task status writes when another writer got there first
"""
import asyncio
import uuid

import pytest

from database import AsyncSessionLocal
from services.case_lifecycle import CaseStatus
from services.case_service import commit_case_update
from services.errors import Conflict, NotVisible
from services.task_lifecycle import TaskStatus
from services.task_service import commit_task_update


def stale_write(actor, case_id: str, expected_status: str, target: CaseStatus, fields=None):
    """Apply a status change computed from an old read of the case"""
    async def _write():
        async with AsyncSessionLocal() as session:
            return await commit_case_update(
                session, actor, uuid.UUID(case_id), expected_status, fields or {}, target_status=target
            )
    return asyncio.run(_write())


def test_stale_write_retries_when_still_legal(client, auth, actors, make_case):
    case = make_case("agent_a")
    url = f"/api/cases/{case['case_id']}"
    assert client.patch(url, json={"status": "open"}, headers=auth("admin_dakar")).json()["status"] == "open"

    # Read "pending" before the open landed; open -> archived is still legal
    updated = stale_write(actors["super"], case["case_id"], "pending", CaseStatus.archived)
    assert updated.status == "archived"


def test_stale_write_conflicts_when_no_longer_legal(client, auth, actors, make_case):
    case = make_case("agent_a")
    url = f"/api/cases/{case['case_id']}"
    client.patch(url, json={"status": "open"}, headers=auth("admin_dakar"))
    client.patch(url, json={"status": "follow-up"}, headers=auth("admin_dakar"))

    with pytest.raises(Conflict) as exc_info:
        stale_write(actors["admin_dakar"], case["case_id"], "open", CaseStatus.completed)
    assert exc_info.value.current_status == "follow-up"
    assert exc_info.value.attempted_status == "completed"
    assert exc_info.value.to_payload()["code"] == "conflict"

    assert client.get(url, headers=auth("admin_dakar")).json()["status"] == "follow-up"


def test_stale_field_edit_lands_on_current_state(client, auth, actors, make_case):
    case = make_case("agent_a")
    url = f"/api/cases/{case['case_id']}"
    client.patch(url, json={"status": "open"}, headers=auth("admin_dakar"))

    updated = stale_write(actors["agent_a"], case["case_id"], "pending", None, fields={"support_needs": "Shelter"})
    assert updated.status == "open"
    assert updated.support_needs == "Shelter"


def test_vanished_case_is_not_visible(client, auth, actors, make_case):
    case = make_case("agent_a")
    client.delete(f"/api/cases/{case['case_id']}", headers=auth("agent_a"))

    with pytest.raises(NotVisible):
        stale_write(actors["agent_a"], case["case_id"], "pending", CaseStatus.open)


def stale_task_write(actor, task_id: str, expected_status: str, target, fields=None):
    """Apply a task change computed from an old read of the task"""
    async def _write():
        async with AsyncSessionLocal() as session:
            return await commit_task_update(
                session, actor, uuid.UUID(task_id), expected_status, fields or {}, target, None
            )
    return asyncio.run(_write())


def test_stale_task_completion_conflicts_with_cancellation(client, auth, actors, make_task):
    task = make_task("agent_a")
    url = f"/api/tasks/{task['task_id']}"
    assert client.patch(url, json={"status": "cancelled"}, headers=auth("agent_a")).status_code == 200

    with pytest.raises(Conflict) as exc_info:
        stale_task_write(actors["admin_dakar"], task["task_id"], "pending", TaskStatus.completed)
    assert exc_info.value.current_status == "cancelled"
    assert exc_info.value.attempted_status == "completed"

    assert client.get(url, headers=auth("agent_a")).json()["status"] == "cancelled"


def test_stale_task_field_edit_lands_on_current_state(client, auth, actors, make_task):
    task = make_task("agent_a")
    url = f"/api/tasks/{task['task_id']}"
    client.patch(url, json={"status": "completed"}, headers=auth("agent_a"))

    updated = stale_task_write(actors["agent_a"], task["task_id"], "pending", None, fields={"description": "Report filed"})
    assert updated.status == "completed"
    assert updated.description == "Report filed"


def test_vanished_task_is_not_visible(client, auth, actors, make_task):
    task = make_task("agent_a")
    client.delete(f"/api/tasks/{task['task_id']}", headers=auth("agent_a"))

    with pytest.raises(NotVisible):
        stale_task_write(actors["agent_a"], task["task_id"], "pending", TaskStatus.completed)
