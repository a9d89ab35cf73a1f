"""
Pytest configuration and fixtures.
Points the app at a throwaway SQLite file, seeds one account per role and
region, and mints bearer tokens for them.
"""
import asyncio
import os
import tempfile

TEST_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="gbv-tests-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["DB_AUTO_CREATE"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

from main import app
from database import AsyncSessionLocal
from models import User
from models_auth import Actor
from services.auth_service import create_access_token, hash_password

TEST_PASSWORD = "password123"
# Hashed once; bcrypt is deliberately slow
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)

SEED_USERS = {
    "super": ("super-admin", None),
    "admin_dakar": ("admin", "Dakar"),
    "admin_thies": ("admin", "Thiès"),
    "agent_a": ("agent", "Dakar"),
    "agent_b": ("agent", "Dakar"),
    "agent_thies": ("agent", "Thiès"),
}


def run(coro):
    """Drive a coroutine from a synchronous test"""
    return asyncio.run(coro)


async def _insert_user(username: str, role: str, region, status: str = "active") -> User:
    async with AsyncSessionLocal() as session:
        user = User(
            name=username.replace("_", " ").title(),
            username=username,
            password_hash=TEST_PASSWORD_HASH,
            role=role,
            region=region,
            status=status,
            failed_login_attempts=0,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


def insert_user(username: str, role: str, region=None, status: str = "active") -> User:
    return run(_insert_user(username, role, region, status))


def bearer(actor: Actor) -> dict:
    return {"Authorization": f"Bearer {create_access_token(actor)}"}


@pytest.fixture
def client():
    """Test client over a fresh database file"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def users(client):
    """One persisted account per seed entry, keyed by username"""
    return {
        username: insert_user(username, role, region)
        for username, (role, region) in SEED_USERS.items()
    }


@pytest.fixture
def actors(users):
    return {username: Actor.from_user(user) for username, user in users.items()}


@pytest.fixture
def auth(actors):
    """auth("agent_a") -> Authorization header for that seeded account"""
    def _headers(username: str) -> dict:
        return bearer(actors[username])
    return _headers


@pytest.fixture
def make_case(client, auth):
    """Create a case through the API and return its JSON"""
    def _make(username: str, **fields) -> dict:
        payload = {"victim_name": "Test victim", "violence_type": "Violence physique"}
        payload.update(fields)
        response = client.post("/api/cases", json=payload, headers=auth(username))
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def make_task(client, auth):
    """Create a task through the API and return its JSON"""
    def _make(username: str, **fields) -> dict:
        payload = {"title": "Home visit", "date": "2025-03-10", "time": "10:30:00"}
        payload.update(fields)
        response = client.post("/api/tasks", json=payload, headers=auth(username))
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def create_actor(client):
    """create_actor("agent_zig", "agent", "Ziguinchor") -> Actor of a new persisted account"""
    def _create(username: str, role: str, region=None, status: str = "active") -> Actor:
        return Actor.from_user(insert_user(username, role, region, status))
    return _create


@pytest.fixture
def headers_for():
    """headers_for(actor) -> Authorization header for any Actor"""
    return bearer
