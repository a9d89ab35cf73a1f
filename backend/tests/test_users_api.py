"""
API tests for user administration rules
"""


class TestUserAdministration:

    def test_listing_is_scoped(self, client, auth, users):
        everyone = client.get("/api/users", headers=auth("super")).json()
        assert len(everyone) == len(users)

        dakar = {u["username"] for u in client.get("/api/users", headers=auth("admin_dakar")).json()}
        assert dakar == {"admin_dakar", "agent_a", "agent_b"}

        own = client.get("/api/users", headers=auth("agent_a")).json()
        assert [u["username"] for u in own] == ["agent_a"]

    def test_admin_creates_agents_in_own_region_only(self, client, auth):
        payload = {"name": "New Agent", "username": "new_agent", "password": "secret123"}
        created = client.post("/api/users", json=payload, headers=auth("admin_dakar"))
        assert created.status_code == 201
        assert created.json()["role"] == "agent"
        assert created.json()["region"] == "Dakar"

        as_admin = dict(payload, username="new_admin", role="admin")
        assert client.post("/api/users", json=as_admin, headers=auth("admin_dakar")).status_code == 403

        elsewhere = dict(payload, username="far_agent", region="Thiès")
        assert client.post("/api/users", json=elsewhere, headers=auth("admin_dakar")).status_code == 403

    def test_agents_cannot_create_users(self, client, auth):
        payload = {"name": "X", "username": "xagent", "password": "secret123"}
        assert client.post("/api/users", json=payload, headers=auth("agent_a")).status_code == 403

    def test_duplicate_username_rejected(self, client, auth):
        payload = {"name": "Dup", "username": "agent_a", "password": "secret123", "region": "Dakar"}
        response = client.post("/api/users", json=payload, headers=auth("super"))
        assert response.status_code == 422
        assert response.json()["details"] == ["username: already in use"]

    def test_region_required_for_agents(self, client, auth):
        payload = {"name": "No Region", "username": "noregion", "password": "secret123"}
        assert client.post("/api/users", json=payload, headers=auth("super")).status_code == 422

    def test_self_update_but_not_role_or_status(self, client, auth, actors):
        url = f"/api/users/{actors['agent_a'].id}"
        renamed = client.patch(url, json={"name": "Aminata"}, headers=auth("agent_a"))
        assert renamed.status_code == 200
        assert renamed.json()["name"] == "Aminata"

        assert client.patch(url, json={"role": "admin"}, headers=auth("agent_a")).status_code == 403
        assert client.patch(url, json={"status": "inactive"}, headers=auth("agent_a")).status_code == 403

    def test_admin_manages_region_only(self, client, auth, actors):
        local = f"/api/users/{actors['agent_a'].id}"
        foreign = f"/api/users/{actors['agent_thies'].id}"
        deactivated = client.patch(local, json={"status": "inactive"}, headers=auth("admin_dakar"))
        assert deactivated.status_code == 200
        assert deactivated.json()["status"] == "inactive"
        assert client.patch(local, json={"region": "Thiès"}, headers=auth("admin_dakar")).status_code == 403
        assert client.patch(foreign, json={"name": "X"}, headers=auth("admin_dakar")).status_code == 404

    def test_super_admin_changes_role_and_region(self, client, auth, actors):
        url = f"/api/users/{actors['agent_a'].id}"
        response = client.patch(url, json={"role": "admin", "region": "Kolda"}, headers=auth("super"))
        assert response.status_code == 200
        assert response.json()["role"] == "admin"
        assert response.json()["region"] == "Kolda"

    def test_delete_rules(self, client, auth, actors):
        assert client.delete(f"/api/users/{actors['admin_dakar'].id}", headers=auth("admin_dakar")).status_code == 403
        assert client.delete(f"/api/users/{actors['admin_thies'].id}", headers=auth("admin_dakar")).status_code == 404
        assert client.delete(f"/api/users/{actors['agent_a'].id}", headers=auth("agent_b")).status_code == 403
        assert client.delete(f"/api/users/{actors['agent_a'].id}", headers=auth("admin_dakar")).status_code == 200
        assert client.delete(f"/api/users/{actors['super'].id}", headers=auth("super")).status_code == 403
        assert client.delete(f"/api/users/{actors['admin_thies'].id}", headers=auth("super")).status_code == 200

    def test_role_and_password_changes_are_audited(self, client, auth, actors):
        url = f"/api/users/{actors['agent_b'].id}"
        client.patch(url, json={"role": "admin"}, headers=auth("super"))
        client.patch(url, json={"password": "another-secret"}, headers=auth("super"))
        logs = client.get("/api/audit-logs?resource_type=user", headers=auth("super")).json()
        actions = [entry["action"] for entry in logs["logs"]]
        assert "ROLE_CHANGE" in actions
        assert "PASSWORD_CHANGE" in actions
        assert actions.count("USER_UPDATE") == 2

    def test_super_admin_cannot_demote_self(self, client, auth, actors):
        url = f"/api/users/{actors['super'].id}"
        response = client.patch(url, json={"role": "agent", "region": "Dakar"}, headers=auth("super"))
        assert response.status_code == 403
        assert client.patch(url, json={"status": "inactive"}, headers=auth("super")).status_code == 403

        me = client.get(url, headers=auth("super")).json()
        assert me["role"] == "super-admin"
        assert me["region"] is None

        renamed = client.patch(url, json={"name": "National Coordinator"}, headers=auth("super"))
        assert renamed.status_code == 200
