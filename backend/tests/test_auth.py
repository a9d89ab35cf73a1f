"""
Tests for authentication: password hashing, tokens, login and lockout
"""
from datetime import timedelta

import pytest

from models_auth import Actor, UserRole
from services.auth_service import (
    MAX_LOGIN_ATTEMPTS,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)
from services.errors import Unauthenticated

PASSWORD = "password123"


def test_password_hashing():
    """Test password hashing and verification"""
    hashed = hash_password("TestPassword123!")
    assert hashed != "TestPassword123!"
    assert verify_password("TestPassword123!", hashed)
    assert not verify_password("WrongPassword", hashed)


def test_token_round_trip_carries_identity():
    actor = Actor(id="42", role=UserRole.admin, region="Kolda", name="Fatou")
    claims = decode_token(create_access_token(actor))
    assert Actor.from_claims(claims) == actor


def test_expired_token_rejected():
    actor = Actor(id="42", role=UserRole.agent, region="Kolda")
    token = create_access_token(actor, expires_delta=timedelta(seconds=-1))
    with pytest.raises(Unauthenticated):
        decode_token(token)


def test_garbage_token_rejected():
    with pytest.raises(Unauthenticated):
        decode_token("abc.def.ghi")


def test_login_success(client, users):
    response = client.post("/api/auth/login", json={"username": "agent_a", "password": PASSWORD})
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 240 * 60
    assert data["user"]["role"] == "agent"
    assert "password_hash" not in data["user"]

    claims = decode_token(data["access_token"])
    assert claims["sub"] == str(users["agent_a"].user_id)
    assert claims["region"] == "Dakar"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == "agent_a"


def test_login_wrong_password(client, users):
    response = client.post("/api/auth/login", json={"username": "agent_a", "password": "nope"})
    assert response.status_code == 401
    unknown = client.post("/api/auth/login", json={"username": "nobody", "password": "nope"})
    assert unknown.status_code == 401
    assert unknown.json() == response.json()


def test_lockout_after_repeated_failures(client, users):
    for _ in range(MAX_LOGIN_ATTEMPTS):
        client.post("/api/auth/login", json={"username": "agent_b", "password": "wrong"})

    locked = client.post("/api/auth/login", json={"username": "agent_b", "password": PASSWORD})
    assert locked.status_code == 423


def test_inactive_account_cannot_login(client, create_actor):
    create_actor("retired", "agent", "Dakar", status="inactive")
    response = client.post("/api/auth/login", json={"username": "retired", "password": PASSWORD})
    assert response.status_code == 403


def test_login_attempts_are_audited(client, users, auth):
    client.post("/api/auth/login", json={"username": "agent_a", "password": "nope"})
    client.post("/api/auth/login", json={"username": "agent_a", "password": PASSWORD})
    logs = client.get("/api/audit-logs", headers=auth("super")).json()["logs"]
    actions = {entry["action"] for entry in logs}
    assert {"LOGIN_FAILED", "LOGIN_SUCCESS"} <= actions
