"""
API tests for tasks: assignment, visibility, edit matrix and lifecycle
"""
from fastapi.testclient import TestClient


class TestTaskAssignment:

    def test_super_admin_assigns_and_invites(self, client: TestClient, auth, actors, make_task):
        """Assignee may edit; an invited admin sees the task but may not edit a super-admin's task"""
        task = make_task(
            "super",
            assigned_to=actors["agent_a"].id,
            participants=[actors["admin_dakar"].id],
        )
        assert task["creator_role"] == "super-admin"
        assert task["region"] == "Dakar"
        url = f"/api/tasks/{task['task_id']}"

        edited = client.patch(url, json={"title": "Court hearing"}, headers=auth("agent_a"))
        assert edited.status_code == 200
        assert edited.json()["title"] == "Court hearing"

        assert client.get(url, headers=auth("admin_dakar")).status_code == 200
        denied = client.patch(url, json={"title": "Changed"}, headers=auth("admin_dakar"))
        assert denied.status_code == 403

    def test_participant_agent_cannot_edit(self, client, auth, actors, make_task):
        task = make_task(
            "super",
            assigned_to=actors["agent_a"].id,
            participants=[actors["agent_b"].id],
        )
        url = f"/api/tasks/{task['task_id']}"
        assert client.get(url, headers=auth("agent_b")).status_code == 200
        assert client.patch(url, json={"status": "completed"}, headers=auth("agent_b")).status_code == 403
        assert client.delete(url, headers=auth("agent_b")).status_code == 403

    def test_agent_tasks_are_self_assigned(self, client, auth, actors, make_task):
        task = make_task("agent_a")
        assert task["assigned_to"] == actors["agent_a"].id
        assert task["participants"] == []

        response = client.post(
            "/api/tasks",
            json={"title": "X", "date": "2025-03-10", "time": "09:00:00", "assigned_to": actors["agent_b"].id},
            headers=auth("agent_a"),
        )
        assert response.status_code == 403

    def test_admin_cannot_invite_participants(self, client, auth, actors):
        response = client.post(
            "/api/tasks",
            json={"title": "X", "date": "2025-03-10", "time": "09:00:00", "participants": [actors["agent_a"].id]},
            headers=auth("admin_dakar"),
        )
        assert response.status_code == 403

    def test_non_super_admin_cannot_reassign_on_update(self, client, auth, actors, make_task):
        task = make_task("agent_a")
        url = f"/api/tasks/{task['task_id']}"
        response = client.patch(url, json={"assigned_to": actors["agent_b"].id}, headers=auth("agent_a"))
        assert response.status_code == 403
        same = client.patch(url, json={"assigned_to": actors["agent_a"].id}, headers=auth("agent_a"))
        assert same.status_code == 200

    def test_unknown_assignee_is_rejected(self, client, auth):
        response = client.post(
            "/api/tasks",
            json={"title": "X", "date": "2025-03-10", "time": "09:00:00", "assigned_to": "nobody"},
            headers=auth("super"),
        )
        assert response.status_code == 422

    def test_region_follows_related_case(self, client, auth, actors, make_case, make_task):
        case = make_case("agent_thies")
        task = make_task("super", assigned_to=actors["agent_thies"].id, related_case_id=case["case_id"])
        assert task["region"] == "Thiès"
        assert client.get(f"/api/tasks/{task['task_id']}", headers=auth("admin_thies")).status_code == 200
        assert client.get(f"/api/tasks/{task['task_id']}", headers=auth("admin_dakar")).status_code == 404

    def test_related_case_must_be_visible(self, client, auth, make_case):
        case = make_case("agent_thies")
        response = client.post(
            "/api/tasks",
            json={"title": "X", "date": "2025-03-10", "time": "09:00:00", "related_case_id": case["case_id"]},
            headers=auth("agent_a"),
        )
        assert response.status_code == 422


class TestTaskVisibility:

    def test_outsiders_get_404(self, client, auth, make_task):
        task = make_task("agent_a")
        url = f"/api/tasks/{task['task_id']}"
        assert client.get(url, headers=auth("agent_b")).status_code == 404
        assert client.patch(url, json={"title": "Y"}, headers=auth("agent_b")).status_code == 404
        assert client.get(url, headers=auth("admin_thies")).status_code == 404
        assert client.get(url, headers=auth("admin_dakar")).status_code == 200

    def test_list_is_ordered_and_filtered(self, client, auth, make_task):
        late = make_task("agent_a", date="2025-04-01", time="08:00:00")
        early = make_task("agent_a", date="2025-03-01", time="15:00:00")
        earliest = make_task("agent_a", date="2025-03-01", time="09:00:00")
        make_task("agent_b")

        listed = client.get("/api/tasks", headers=auth("agent_a")).json()
        assert [t["task_id"] for t in listed] == [earliest["task_id"], early["task_id"], late["task_id"]]

        filtered = client.get("/api/tasks?date_from=2025-03-15", headers=auth("agent_a")).json()
        assert [t["task_id"] for t in filtered] == [late["task_id"]]

        client.patch(f"/api/tasks/{late['task_id']}", json={"status": "completed"}, headers=auth("agent_a"))
        done = client.get("/api/tasks?status=completed", headers=auth("agent_a")).json()
        assert [t["task_id"] for t in done] == [late["task_id"]]


class TestTaskLifecycle:

    def test_terminal_tasks_do_not_reopen(self, client, auth, make_task):
        task = make_task("agent_a")
        url = f"/api/tasks/{task['task_id']}"
        assert client.patch(url, json={"status": "cancelled"}, headers=auth("agent_a")).status_code == 200

        response = client.patch(url, json={"status": "pending"}, headers=auth("agent_a"))
        assert response.status_code == 409
        assert response.json()["current_status"] == "cancelled"

        notes = client.patch(url, json={"description": "Victim moved"}, headers=auth("agent_a"))
        assert notes.status_code == 200
        assert notes.json()["status"] == "cancelled"

    def test_admin_edits_agent_task_in_region(self, client, auth, make_task):
        task = make_task("agent_a")
        url = f"/api/tasks/{task['task_id']}"
        response = client.patch(url, json={"priority": "high"}, headers=auth("admin_dakar"))
        assert response.status_code == 200
        assert response.json()["priority"] == "high"

    def test_participating_admin_from_another_region_cannot_edit(self, client, auth, actors, make_task):
        task = make_task("agent_a")
        url = f"/api/tasks/{task['task_id']}"
        invited = client.patch(url, json={"participants": [actors["admin_thies"].id]}, headers=auth("super"))
        assert invited.status_code == 200

        assert client.get(url, headers=auth("admin_thies")).status_code == 200
        assert client.patch(url, json={"title": "Renamed"}, headers=auth("admin_thies")).status_code == 403
        assert client.delete(url, headers=auth("admin_thies")).status_code == 403
        assert client.get(url, headers=auth("agent_a")).json()["title"] == "Home visit"

    def test_delete_by_creator(self, client, auth, make_task):
        task = make_task("agent_a")
        url = f"/api/tasks/{task['task_id']}"
        assert client.delete(url, headers=auth("agent_a")).status_code == 200
        assert client.get(url, headers=auth("agent_a")).status_code == 404
