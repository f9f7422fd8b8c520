"""Shared test configuration and fixtures for backend tests.

Key principles:
- All HTTP calls go through the local ASGI app.
- Single Motor/Mongo client per test session; tests that need MongoDB are
  skipped when MONGO_URL is unreachable.
- httpx.AsyncClient over ASGITransport, base_url="http://test".
- AnyIO is the single async runner (@pytest.mark.anyio).
"""

from typing import Any, AsyncGenerator, Callable, Dict, Optional

import os
import sys
import uuid
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

# Ensure backend root is on sys.path so that `server` module is importable
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("MONGO_SERVER_SELECTION_TIMEOUT_MS", "1500")

from server import app
from hrdesk.auth import create_access_token, hash_password
from hrdesk.db import create_client, get_db
from hrdesk.domain.leave_state_machine import DEFAULT_LEAVE_BALANCE
from hrdesk.indexes.hr_indexes import ensure_hr_indexes
from hrdesk.seed import ensure_system_roles
from hrdesk.utils import now_utc


MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")

TEST_PASSWORD = "secret123"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio event loop."""

    return "asyncio"


@pytest.fixture(scope="session")
def password_hash() -> str:
    # bcrypt is slow; hash once per session
    return hash_password(TEST_PASSWORD)


@pytest.fixture(scope="session")
async def motor_client() -> AsyncGenerator[AsyncIOMotorClient, None]:
    """Session-scoped Motor client; skips DB tests when Mongo is down."""

    client = create_client(MONGO_URL)
    try:
        await client.admin.command("ping")
    except PyMongoError as exc:
        client.close()
        pytest.skip(f"MongoDB not reachable at {MONGO_URL}: {exc}")

    try:
        yield client
    finally:
        client.close()


@pytest.fixture(scope="function")
async def test_db(motor_client: AsyncIOMotorClient) -> AsyncGenerator[Any, None]:
    """Function-scoped isolated database with indexes and system roles.

    Each test gets its own temporary database, dropped on teardown.
    """

    db_name = f"hrdesk_test_{uuid.uuid4().hex}"
    db = motor_client[db_name]
    try:
        await ensure_hr_indexes(db)
        await ensure_system_roles(db)
        yield db
    finally:
        await motor_client.drop_database(db_name)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch) -> Path:
    """E-filing blobs go to a per-test temp directory."""

    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path))
    return tmp_path / "efiling"


@pytest.fixture(scope="function")
async def app_with_overrides(test_db) -> AsyncGenerator[Any, None]:
    """FastAPI app instance whose get_db dependency points to test_db."""

    async def override_get_db():
        return test_db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def async_client(app_with_overrides) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = ASGITransport(app=app_with_overrides)
    async with httpx.AsyncClient(transport=transport, base_url="http://test", timeout=30.0) as client:
        yield client


@pytest.fixture
def make_user(test_db, password_hash) -> Callable[..., Any]:
    """Insert a user and return (user_doc, auth_headers)."""

    async def _make(
        username: Optional[str] = None,
        *,
        role: str = "EMPLOYEE",
        leave_balance: Optional[Dict[str, float]] = None,
        employment: Optional[Dict[str, Any]] = None,
        first_name: str = "Test",
        last_name: str = "User",
        is_active: bool = True,
    ):
        username = username or f"user_{uuid.uuid4().hex[:8]}"
        doc = {
            "username": username,
            "email": f"{username}@example.com",
            "password_hash": password_hash,
            "profile": {"first_name": first_name, "last_name": last_name},
            "role": role,
            "is_active": is_active,
            "leave_balance": dict(DEFAULT_LEAVE_BALANCE if leave_balance is None else leave_balance),
            "employment": employment or {"designation": "Associate"},
            "created_at": now_utc(),
            "updated_at": now_utc(),
        }
        res = await test_db.users.insert_one(doc)
        doc["_id"] = res.inserted_id
        token = create_access_token(user_id=str(res.inserted_id), role=role)
        return doc, {"Authorization": f"Bearer {token}"}

    return _make
