"""Integration-test fixtures.

These tests need PostgreSQL (migrated with ``alembic upgrade head``) and Redis.
All of them share one event loop so the module-level SQLAlchemy engine pool
and Redis pool stay valid for the whole session.
"""

import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app

PASSWORD = "TestPass123!"


def unique_name(prefix: str = "user") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(client: AsyncClient) -> Callable[[], Awaitable[dict]]:
    """Register and log in a fresh user; yields its id, username and auth headers."""

    async def _make() -> dict:
        username = unique_name()
        reg = await client.post("/api/v1/auth/register", json={
            "username": username,
            "email": f"{username}@example.com",
            "password": PASSWORD,
        })
        assert reg.status_code == 201, reg.text
        login = await client.post("/api/v1/auth/login", json={
            "username": username,
            "password": PASSWORD,
        })
        assert login.status_code == 200, login.text
        token = login.json()["data"]["access_token"]
        return {
            "user_id": reg.json()["data"]["user_id"],
            "username": username,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _make


@pytest.fixture
def make_group(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    async def _make(owner: dict, privacy: str = "PUBLIC") -> dict:
        resp = await client.post(
            "/api/v1/groups",
            json={"name": unique_name("grp"), "privacy": privacy},
            headers=owner["headers"],
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _make


@pytest.fixture
def betting_deadline() -> str:
    return (datetime.now(UTC) + timedelta(hours=24)).isoformat()
